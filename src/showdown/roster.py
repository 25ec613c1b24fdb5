"""
Roster of eligible player names, loaded once from a one-column CSV file.
"""
import csv
import logging
import os
from typing import List

logger = logging.getLogger(__name__)


def load_players(file_path: str) -> List[str]:
    """Load player names from CSV. Blank rows are skipped, duplicates kept once.

    Returns an empty list if the file does not exist.
    """
    if not os.path.exists(file_path):
        logger.warning('Player roster %s not found', file_path)
        return []

    players = []
    seen = set()
    with open(file_path, mode='r', encoding='utf-8', newline='') as file:
        reader = csv.reader(file)
        for row in reader:
            if not row:
                continue
            name = row[0].strip()
            if name and name not in seen:
                seen.add(name)
                players.append(name)

    logger.info('Loaded %d players from %s', len(players), file_path)
    return players
