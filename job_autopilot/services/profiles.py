"""
Candidate profiles used for matching and form filling.

Profiles are JSON files named after the user id:

    {
        "skills": [{"name": "Python", "proficiency": 4}, "SQL"],
        "total_years_experience": 6,
        "preferred_locations": ["Remote", "Berlin"],
        "minimum_salary": 90000,
        "remote_preferred": true,
        "excluded_companies": ["Initech"],
        "excluded_keywords": ["unpaid"],
        "applicant": {"first_name": "Ada", "last_name": "Lovelace", "email": "ada@example.com"}
    }
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union
import json
import logging
import re

from job_autopilot.core.models import CandidateProfile
from job_autopilot.core.submission import ApplicantDetails
from job_autopilot.errors import ProfileNotFoundError


USER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.@-]+$")


class ProfileProvider(ABC):
    """Source of candidate profiles."""

    @abstractmethod
    def build_match_profile(self, user_id: str) -> CandidateProfile:
        """
        Raises:
            ProfileNotFoundError: if the user has no profile
        """
        pass

    def get_applicant(self, user_id: str) -> Optional[ApplicantDetails]:
        return None


class JsonProfileProvider(ProfileProvider):
    """Reads <user_id>.json profiles from a directory."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        self.logger = logging.getLogger(self.__class__.__name__)

    def build_match_profile(self, user_id: str) -> CandidateProfile:
        return CandidateProfile.from_dict(self._load(user_id))

    def get_applicant(self, user_id: str) -> Optional[ApplicantDetails]:
        try:
            data = self._load(user_id)
        except ProfileNotFoundError:
            return None

        applicant = data.get("applicant")
        return ApplicantDetails.from_dict(applicant) if applicant else None

    def save_profile(self, user_id: str, data: dict) -> Path:
        path = self._path(user_id)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(data, f, indent=2)
        return path

    def _path(self, user_id: str) -> Path:
        if not USER_ID_PATTERN.match(user_id or "") or user_id.startswith("."):
            raise ProfileNotFoundError(f"Invalid user id: {user_id!r}")
        return self.directory / f"{user_id}.json"

    def _load(self, user_id: str) -> dict:
        path = self._path(user_id)
        if not path.exists():
            raise ProfileNotFoundError(f"No profile for user {user_id}")

        with open(path, "r") as f:
            return json.load(f)
