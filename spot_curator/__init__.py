"""
spot-curator: Collect the tracks of followed Spotify playlists.

Architecture:
    Authentication (spotify/):
        - Generate a CSRF state and open the Spotify authorization page
        - Receive the redirect on a local callback listener
        - Exchange the code for tokens and store them in an INI file

    Synchronization (sync/):
        - Refresh the access token from the stored refresh token
        - Walk each followed playlist page by page from its stored offset
        - Store every new track once, across all playlists
        - Advance the offset together with the page's inserts

    Publishing (publish.py):
        - Pick a stored track that has not been posted yet
        - Hand its URL to a publishing collaborator

Modules:
    core/       - Configuration, database, logging, exceptions
    spotify/    - OAuth flow, credential storage, playlist page client
    sync/       - Incremental playlist synchronization
    publish.py  - Publishing seam
    cli.py      - Command-line interface

Usage:
    Command Line:
        spot-curator auth
        spot-curator playlist add "Morning" 37i9dQZF1DXcBWIGoYBM5M
        spot-curator tracks update

    Python API:
        from spot_curator.core import load_config, Database
        from spot_curator.spotify import PlaylistClient
        from spot_curator.sync import PlaylistSyncEngine
"""

__version__ = "0.1.0"
__author__ = "spot-curator contributors"
