"""
constants.py - Constants for the app.

Copyright (c) EDCD, All Rights Reserved
Licensed under the GNU General Public License.
See LICENSE file.

Constants shared by config, logging and the journal engine.  Kept in a
module of their own so that importing them never pulls in config.
"""

# config
appname = "EDJournalTracker"
applongname = "E:D Journal Tracker"
appcmdname = "EDJT"
GITVERSION_FILE = ".gitversion"

# journal_files.py
JOURNAL_GAME_DIR = ("Frontier Developments", "Elite Dangerous")
# Steam app id of the game, used to find the Proton prefix on Linux
ELITE_STEAM_APPID = "359320"
