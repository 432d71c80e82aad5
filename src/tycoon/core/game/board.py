from typing import Dict, List, Optional, Tuple

from tycoon.core.game.spaces import (
    Square,
    SquareKind,
    land,
    railway,
    special,
    tax,
    utility,
)

BOARD_SIZE = 40
JAIL_SQUARE = 10
GO_TO_JAIL_SQUARE = 30


def _create_standard_board() -> Tuple[Square, ...]:
    """Create the standard 40-square board."""
    return (
        # Bottom row (0-10)
        special(0, "GO", SquareKind.GO),
        land(1, "Mediterranean Avenue", 60, "brown", (2, 10, 30, 90, 160, 250), 50),
        special(2, "Community Chest", SquareKind.COMMUNITY),
        land(3, "Baltic Avenue", 60, "brown", (4, 20, 60, 180, 320, 450), 50),
        tax(4, "Income Tax", 200),
        railway(5, "Reading Railroad"),
        land(6, "Oriental Avenue", 100, "light_blue", (6, 30, 90, 270, 400, 550), 50),
        special(7, "Chance", SquareKind.CHANCE),
        land(8, "Vermont Avenue", 100, "light_blue", (6, 30, 90, 270, 400, 550), 50),
        land(9, "Connecticut Avenue", 120, "light_blue", (8, 40, 100, 300, 450, 600), 50),
        special(10, "Jail / Just Visiting", SquareKind.JAIL),
        # Left side (11-20)
        land(11, "St. Charles Place", 140, "pink", (10, 50, 150, 450, 625, 750), 100),
        utility(12, "Electric Company"),
        land(13, "States Avenue", 140, "pink", (10, 50, 150, 450, 625, 750), 100),
        land(14, "Virginia Avenue", 160, "pink", (12, 60, 180, 500, 700, 900), 100),
        railway(15, "Pennsylvania Railroad"),
        land(16, "St. James Place", 180, "orange", (14, 70, 200, 550, 750, 950), 100),
        special(17, "Community Chest", SquareKind.COMMUNITY),
        land(18, "Tennessee Avenue", 180, "orange", (14, 70, 200, 550, 750, 950), 100),
        land(19, "New York Avenue", 200, "orange", (16, 80, 220, 600, 800, 1000), 100),
        special(20, "Free Parking", SquareKind.FREE),
        # Top row (21-30)
        land(21, "Kentucky Avenue", 220, "red", (18, 90, 250, 700, 875, 1050), 150),
        special(22, "Chance", SquareKind.CHANCE),
        land(23, "Indiana Avenue", 220, "red", (18, 90, 250, 700, 875, 1050), 150),
        land(24, "Illinois Avenue", 240, "red", (20, 100, 300, 750, 925, 1100), 150),
        railway(25, "B. & O. Railroad"),
        land(26, "Atlantic Avenue", 260, "yellow", (22, 110, 330, 800, 975, 1150), 150),
        land(27, "Ventnor Avenue", 260, "yellow", (22, 110, 330, 800, 975, 1150), 150),
        utility(28, "Water Works"),
        land(29, "Marvin Gardens", 280, "yellow", (24, 120, 360, 850, 1025, 1200), 150),
        special(30, "Go To Jail", SquareKind.GO_TO_JAIL),
        # Right side (31-39)
        land(31, "Pacific Avenue", 300, "green", (26, 130, 390, 900, 1100, 1275), 200),
        land(32, "North Carolina Avenue", 300, "green", (26, 130, 390, 900, 1100, 1275), 200),
        special(33, "Community Chest", SquareKind.COMMUNITY),
        land(34, "Pennsylvania Avenue", 320, "green", (28, 150, 450, 1000, 1200, 1400), 200),
        railway(35, "Short Line"),
        special(36, "Chance", SquareKind.CHANCE),
        land(37, "Park Place", 350, "dark_blue", (35, 175, 500, 1100, 1300, 1500), 200),
        tax(38, "Luxury Tax", 100),
        land(39, "Boardwalk", 400, "dark_blue", (50, 200, 600, 1400, 1700, 2000), 200),
    )


def _check_board(squares: Tuple[Square, ...]) -> Tuple[Square, ...]:
    """Square ids double as list indexes, so the table must be dense and ordered."""
    if len(squares) != BOARD_SIZE:
        raise ValueError(f"Board has {len(squares)} squares, expected {BOARD_SIZE}")
    for index, square in enumerate(squares):
        if square.id != index:
            raise ValueError(f"Square {square.name!r} has id {square.id} at index {index}")
    return squares


# Lookup tables, built once at import.
SQUARES: Tuple[Square, ...] = _check_board(_create_standard_board())

RAILWAY_IDS: Tuple[int, ...] = tuple(s.id for s in SQUARES if s.kind is SquareKind.RAILWAY)
UTILITY_IDS: Tuple[int, ...] = tuple(s.id for s in SQUARES if s.kind is SquareKind.UTILITY)
OWNABLE_IDS: Tuple[int, ...] = tuple(s.id for s in SQUARES if s.is_ownable)


def _build_color_groups() -> Dict[str, Tuple[int, ...]]:
    groups: Dict[str, List[int]] = {}
    for square in SQUARES:
        if square.kind is SquareKind.LAND:
            groups.setdefault(square.color_group, []).append(square.id)
    return {color: tuple(ids) for color, ids in groups.items()}


COLOR_GROUPS: Dict[str, Tuple[int, ...]] = _build_color_groups()


def get_square(square_id: int) -> Square:
    """Get the square with the given id (board position)."""
    if not 0 <= square_id < BOARD_SIZE:
        raise ValueError(f"Square id out of range: {square_id}")
    return SQUARES[square_id]


def find_square(square_id: int) -> Optional[Square]:
    """Like get_square, but returns None for unknown ids."""
    if 0 <= square_id < BOARD_SIZE:
        return SQUARES[square_id]
    return None


def color_group(color: str) -> Tuple[int, ...]:
    """All land ids in a color group."""
    return COLOR_GROUPS.get(color, ())


def next_of(ids: Tuple[int, ...], position: int) -> int:
    """First id strictly greater than ``position``, wrapping to the first id."""
    for square_id in ids:
        if square_id > position:
            return square_id
    return ids[0]


def nearest_railway(position: int) -> int:
    return next_of(RAILWAY_IDS, position)


def nearest_utility(position: int) -> int:
    return next_of(UTILITY_IDS, position)
