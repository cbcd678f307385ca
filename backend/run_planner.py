#!/usr/bin/env python3
"""
Run the planner backend against the simulated world.
Usage: uv run python run_planner.py [CONFIG_JSON]
       or set PLANNER_CONFIG=params.json in env
"""
import os
import sys

# Set PLANNER_CONFIG from argv if provided (resolved before changing directory)
if len(sys.argv) > 1:
    os.environ["PLANNER_CONFIG"] = os.path.abspath(sys.argv[1])
    print(f"Using PLANNER_CONFIG={os.environ['PLANNER_CONFIG']}")

# Add backend to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))
os.chdir(os.path.dirname(os.path.abspath(__file__)))

import uvicorn
uvicorn.run(
    "main:app",
    host=os.environ.get("PLANNER_HOST", "0.0.0.0"),
    port=int(os.environ.get("PLANNER_PORT", "8000")),
)
