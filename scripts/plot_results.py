import pandas as pd
import matplotlib.pyplot as plt
from pathlib import Path

# ============================================================
# Paths
# ============================================================
PROJECT_ROOT = Path(__file__).resolve().parents[1]
RESULTS_CSV = PROJECT_ROOT / "results.csv"
SIZE_ORDER = ["small", "medium", "large"]

print(f"Loading results from: {RESULTS_CSV}")

# ============================================================
# Load CSV
# ============================================================
df = pd.read_csv(RESULTS_CSV)
df.columns = df.columns.str.strip()

df["placed_share"] = df["assignments"] / df["total_periods"]
sizes = [s for s in SIZE_ORDER if s in set(df["instance"])]

# ============================================================
# PLOT 1: Efficiency across seeds, per strategy
# ============================================================
plt.figure(figsize=(7, 4))
for (inst, strategy), subset in df.groupby(["instance", "strategy"]):
    plt.scatter(subset["seed"], subset["efficiency"], label=f"{inst} / {strategy}", alpha=0.7)

plt.xlabel("Random seed")
plt.ylabel("Efficiency (%)")
plt.title("Efficiency across seeds")
plt.legend()
plt.grid(True)
plt.tight_layout()

# ============================================================
# PLOT 2: Mean runtime by instance size and strategy
# ============================================================
plt.figure(figsize=(7, 4))
runtime = (
    df.groupby(["instance", "strategy"])["wall_time_s"]
      .mean()
      .unstack("strategy")
      .reindex(sizes)
)
runtime.plot(kind="bar", ax=plt.gca(), rot=0)
plt.ylabel("Mean wall time (s)")
plt.title("Runtime by instance size")
plt.grid(axis="y")
plt.tight_layout()

# ============================================================
# PLOT 3: Efficiency before and after optimization
# ============================================================
plt.figure(figsize=(6, 4))
grouped = (
    df.groupby("instance")[["efficiency", "optimized_efficiency"]]
      .mean()
      .reindex(sizes)
)
grouped.plot(kind="bar", ax=plt.gca(), rot=0)
plt.ylabel("Mean efficiency (%)")
plt.title("Optimizer effect by instance size")
plt.grid(axis="y")
plt.tight_layout()

# ============================================================
# PLOT 4: Share of required periods placed
# ============================================================
plt.figure(figsize=(6, 4))
placed = (
    df.groupby("instance")["placed_share"]
      .agg(["mean", "std"])
      .reindex(sizes)
)
plt.bar(placed.index, placed["mean"], yerr=placed["std"].fillna(0), capsize=6)
plt.ylabel("Placed / required periods")
plt.title("Requirement coverage by instance size")
plt.grid(axis="y")
plt.tight_layout()

# ============================================================
# SHOW ALL FIGURES AT ONCE
# ============================================================
plt.show()
