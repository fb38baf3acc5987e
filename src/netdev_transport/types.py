"""Type definitions for Netdev Transport."""

from typing import List, Tuple

# Argument vector handed to the spawned program
OpenCmd = List[str]

# Pseudo-terminal size as (rows, cols)
PtyDimensions = Tuple[int, int]

