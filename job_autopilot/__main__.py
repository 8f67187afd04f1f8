"""
Main entry point for the job_autopilot package.

Usage:
    python -m job_autopilot [command] [options]

See 'python -m job_autopilot --help' for available commands.
"""

from job_autopilot.cli import main

if __name__ == "__main__":
    main()
