import json
import logging
import os
from datetime import datetime
from typing import List, Optional, Tuple, Union

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from .catalog import catalog_from_dict
from .config import (
    CP_SAT_TIME_LIMIT_SECONDS,
    DEFAULT_ACADEMIC_YEAR,
    DEFAULT_GENERATED_BY,
    DEFAULT_TERM,
    MAX_BACKTRACKS,
    setup_logging,
)
from .conflicts import check_conflicts
from .engine import BACKTRACKING, GenerationConfig, generate_schedule
from .models import Assignment, Schedule
from .optimizer import optimize
from .timetables import class_timetable, teacher_timetables

setup_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="School Timetable API")

# CORS setup (simplified for dev)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # allows all origins in dev
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Pydantic models for input data
class SubjectModel(BaseModel):
    id: str
    name: Optional[str] = None
    periods_per_week: int
    room_type: Optional[str] = None

class TeacherModel(BaseModel):
    id: str
    name: Optional[str] = None
    subjects: List[str]
    available: Optional[List[Tuple[int, int]]] = None
    unavailable: Optional[List[Tuple[int, int]]] = None
    max_periods_per_week: Optional[int] = None

class RoomModel(BaseModel):
    id: str
    name: Optional[str] = None
    type: str = "classroom"
    capacity: int = 0
    shareable: bool = False

class RequirementModel(BaseModel):
    subject_id: str
    periods_per_week: Optional[int] = None

class ClassModel(BaseModel):
    id: str
    grade: str = ""
    student_count: int = 0
    subjects: List[Union[str, RequirementModel]]
    home_room_id: Optional[str] = None

class GridModel(BaseModel):
    days_per_week: Optional[int] = None
    periods_per_day: Optional[int] = None
    break_periods: Optional[List[int]] = None
    lunch_periods: Optional[List[int]] = None
    period_times: Optional[List[str]] = None
    break_room: Optional[str] = None
    lunch_room: Optional[str] = None

class CatalogData(BaseModel):
    subjects: List[SubjectModel]
    teachers: List[TeacherModel]
    rooms: List[RoomModel]
    classes: List[ClassModel]
    grid: Optional[GridModel] = None

class GenerateRequest(CatalogData):
    academic_year: str = DEFAULT_ACADEMIC_YEAR
    term: str = DEFAULT_TERM
    generated_by: str = DEFAULT_GENERATED_BY
    strategy: str = BACKTRACKING
    max_backtracks: int = MAX_BACKTRACKS
    deadline_seconds: Optional[float] = None
    time_limit_seconds: float = CP_SAT_TIME_LIMIT_SECONDS
    random_seed: int = 0

class AssignmentModel(BaseModel):
    class_id: str
    day: int
    period: int
    subject_id: str
    teacher_id: str
    room_id: str

class CheckConflictsRequest(CatalogData):
    assignments: List[AssignmentModel]
    class_ids: Optional[List[str]] = None

class ScheduleModel(BaseModel):
    class_id: str
    academic_year: str = DEFAULT_ACADEMIC_YEAR
    term: str = DEFAULT_TERM
    assignments: List[AssignmentModel]
    generated_at: Optional[datetime] = None
    generated_by: str = DEFAULT_GENERATED_BY

class OptimizeRequest(CatalogData):
    schedules: List[ScheduleModel]
    iteration_budget: Optional[int] = None


def _catalog(request: CatalogData):
    return catalog_from_dict(request.model_dump(
        include={"subjects", "teachers", "rooms", "classes", "grid"},
        exclude_none=True,
    ))


def _assignment(a: AssignmentModel) -> Assignment:
    return Assignment(a.class_id, a.day, a.period, a.subject_id, a.teacher_id, a.room_id)


def _schedule(s: ScheduleModel) -> Schedule:
    schedule = Schedule(
        class_id=s.class_id,
        academic_year=s.academic_year,
        term=s.term,
        assignments=[_assignment(a) for a in s.assignments],
        generated_by=s.generated_by,
    )
    if s.generated_at is not None:
        schedule.generated_at = s.generated_at
    return schedule


@app.post("/generate")
async def generate(request: GenerateRequest):
    try:
        catalog = _catalog(request)
        config = GenerationConfig(
            academic_year=request.academic_year,
            term=request.term,
            generated_by=request.generated_by,
            strategy=request.strategy,
            max_backtracks=request.max_backtracks,
            deadline_seconds=request.deadline_seconds,
            time_limit_seconds=request.time_limit_seconds,
            random_seed=request.random_seed,
        )
        result = generate_schedule(catalog, config)
        response = result.as_dict()
        response["timetables"] = {s.class_id: class_timetable(s, catalog) for s in result.schedules}
        response["teacher_timetables"] = teacher_timetables(result.assignments, catalog)
        if len(result.conflicts):
            response["message"] = f"Timetable generated with {len(result.conflicts)} unmet requirements"
        else:
            response["message"] = "Timetable generated successfully"
        return response
    except ValueError as ve:
        raise HTTPException(status_code=400, detail=f"Solver Error: {ve}")
    except Exception as e:
        logger.exception("Timetable generation failed")
        raise HTTPException(status_code=500, detail=f"Internal Server Error: {e}")

@app.post("/check-conflicts")
async def conflicts(request: CheckConflictsRequest):
    try:
        catalog = _catalog(request)
        report = check_conflicts([_assignment(a) for a in request.assignments], catalog, request.class_ids)
        response = report.as_dict()
        response["message"] = "Conflict check completed"
        return response
    except ValueError as ve:
        raise HTTPException(status_code=400, detail=f"Solver Error: {ve}")
    except Exception as e:
        logger.exception("Conflict check failed")
        raise HTTPException(status_code=500, detail=f"Internal Server Error: {e}")

@app.post("/optimize")
async def optimize_timetable(request: OptimizeRequest):
    try:
        catalog = _catalog(request)
        schedules = [_schedule(s) for s in request.schedules]
        result = optimize(schedules, None, catalog, request.iteration_budget)
        response = result.as_dict()
        response["timetables"] = {s.class_id: class_timetable(s, catalog) for s in result.schedules}
        response["message"] = f"Timetable optimized: {result.summary}"
        return response
    except ValueError as ve:
        raise HTTPException(status_code=400, detail=f"Solver Error: {ve}")
    except Exception as e:
        logger.exception("Timetable optimization failed")
        raise HTTPException(status_code=500, detail=f"Internal Server Error: {e}")

@app.get("/")
async def read_root():
    return {"message": "School Timetable API"}

@app.get("/example")
async def example_problem():
    path = os.path.join(os.path.dirname(__file__), "example.json")
    with open(path, "r") as f:
        return json.load(f)
