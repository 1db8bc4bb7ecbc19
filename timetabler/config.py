# config.py

import logging
import os

LOG_LEVEL = getattr(logging, os.getenv("TIMETABLER_LOG_LEVEL", "INFO").upper(), logging.INFO)
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

DEFAULT_ACADEMIC_YEAR = os.getenv("TIMETABLER_ACADEMIC_YEAR", "2024-2025")
DEFAULT_TERM = os.getenv("TIMETABLER_TERM", "Term 1")
DEFAULT_GENERATED_BY = "admin"

# Grid defaults: 5 days x 8 periods, break after the second period, lunch after the fourth.
DEFAULT_DAYS_PER_WEEK = 5
DEFAULT_PERIODS_PER_DAY = 8
DEFAULT_BREAK_PERIODS = (2,)
DEFAULT_LUNCH_PERIODS = (4,)

# Search limits
MAX_BACKTRACKS = int(os.getenv("TIMETABLER_MAX_BACKTRACKS", "20000"))
CP_SAT_TIME_LIMIT_SECONDS = float(os.getenv("TIMETABLER_CP_SAT_TIME_LIMIT", "10.0"))
# Optimizer budget per teaching cell when the caller gives none
OPTIMIZER_BUDGET_PER_CELL = 4


def setup_logging(level=LOG_LEVEL):
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )
