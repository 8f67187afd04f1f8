"""
Job Autopilot - Background job discovery and application pipeline

This application:
1. Scrapes job boards (LinkedIn, Indeed, Glassdoor) and deduplicates postings
2. Stores postings durably, keyed by board and external id
3. Scores and ranks postings against a candidate profile
4. Tracks every application through a submission state machine with an audit trail
5. Runs scraping, submission and notification work on durable retrying queues
"""

__version__ = "1.0.0"
__author__ = "Job Autopilot"
