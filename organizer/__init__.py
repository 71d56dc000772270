"""
Episode Organizer

Matches loosely named episode files against a reference list and
reorganizes them into series folders, with a journal for undo.
"""
from .models import (
    EpisodeRecord,
    CompositeEpisode,
    CandidateFile,
    Category,
    Discrepancy,
    DiscrepancyKind,
    MatchResult,
    DuplicatePair,
)
from .index import EpisodeIndex, load_records, normalize_title
from .parser import (
    extract_episode_codes,
    extract_episode_number,
    extract_title,
    is_video_file,
)
from .matcher import Matcher, MatchStrategy, new_composite_episode
from .formatter import NamingFormat, series_folder
from .duplicates import find_duplicates
from .planner import Plan, PlanBuilder
from .journal import JournalError, RestorePointJournal
from .executor import ExecuteOptions, PlanExecutor
from .session import PathSafetyError, Session
from .settings import Settings

__version__ = "1.0.0"
__all__ = [
    "EpisodeRecord",
    "CompositeEpisode",
    "CandidateFile",
    "Category",
    "Discrepancy",
    "DiscrepancyKind",
    "MatchResult",
    "DuplicatePair",
    "EpisodeIndex",
    "load_records",
    "normalize_title",
    "extract_episode_codes",
    "extract_episode_number",
    "extract_title",
    "is_video_file",
    "Matcher",
    "MatchStrategy",
    "new_composite_episode",
    "NamingFormat",
    "series_folder",
    "find_duplicates",
    "Plan",
    "PlanBuilder",
    "JournalError",
    "RestorePointJournal",
    "ExecuteOptions",
    "PlanExecutor",
    "PathSafetyError",
    "Session",
    "Settings",
]
