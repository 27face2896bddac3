"""
Nightride - Terminal player for Nightride FM.
"""

__version__ = "1.0.0"
__author__ = "Nightride Team"
__description__ = "A lightweight terminal player for the Nightride FM synthwave radio stations."

# Re-export key classes and functions
from nightride.stations import Station, StationRegistry
from nightride.state import PlaybackState, PlayerStatus, SessionState, TrackMetadata, UNKNOWN_TRACK
from nightride.session import SessionStore
from nightride.search import build_search_url
from nightride.player import PlayerBackend, MpvPlayer
from nightride.controller import PlayerController
from nightride.metadata import MetadataPoller
from nightride.keys import Action, InputDispatcher

__all__ = [
    # Stations
    'Station',
    'StationRegistry',

    # State
    'PlaybackState',
    'PlayerStatus',
    'SessionState',
    'TrackMetadata',
    'UNKNOWN_TRACK',

    # Components
    'SessionStore',
    'build_search_url',
    'PlayerBackend',
    'MpvPlayer',
    'PlayerController',
    'MetadataPoller',
    'Action',
    'InputDispatcher',
]
