import bisect
from typing import Optional, List, Iterable, Tuple, Dict, Any

from catfish_cull import config
from catfish_cull.models import (
    CatchStatus, Division, EventState, LeaderboardRow, PrizeFish, Team,
)


# ============================================================================
# Standings Computation
# ============================================================================

def filter_division(rows: Iterable[LeaderboardRow], division: Division = Division.ALL) -> List[LeaderboardRow]:
    if division == Division.WOMEN:
        return [r for r in rows if r.is_women]
    if division == Division.JUNIORS:
        return [r for r in rows if r.is_junior]
    return list(rows)


def is_eligible(row: LeaderboardRow) -> bool:
    """3-person teams and disqualified catches are listed but never placed."""
    return row.competitor3_name is None and row.status != CatchStatus.DISQUALIFIED


def rank_leaderboard(rows: Iterable[LeaderboardRow], division: Division = Division.ALL) -> List[LeaderboardRow]:
    """Rank the active catches of one division.

    Rank is 1 + the number of eligible rows with a strictly greater count, so
    ties share a rank and the following rank is skipped (5, 5, 3 -> 1, 1, 3).
    """
    filtered = filter_division(rows, division)
    filtered.sort(key=lambda r: -r.catfish_count)

    eligible_counts = sorted(r.catfish_count for r in filtered if is_eligible(r))

    ranked = []
    for row in filtered:
        eligible = is_eligible(row)
        rank = None
        if eligible:
            greater = len(eligible_counts) - bisect.bisect_right(eligible_counts, row.catfish_count)
            rank = greater + 1
        ranked.append(row.model_copy(update={"eligible": eligible, "rank": rank}))
    return ranked


def prize_fish(rows: Iterable[LeaderboardRow]) -> Tuple[Optional[PrizeFish], Optional[PrizeFish]]:
    """Heaviest and lightest fish among eligible rows; first encountered wins ties."""
    heaviest = None
    lightest = None
    for row in rows:
        if not is_eligible(row):
            continue
        if row.heaviest_fish_grams and (heaviest is None or row.heaviest_fish_grams > heaviest.heaviest_fish_grams):
            heaviest = row
        if row.lightest_fish_grams and (lightest is None or row.lightest_fish_grams < lightest.lightest_fish_grams):
            lightest = row

    if heaviest:
        heaviest = PrizeFish(
            grams=heaviest.heaviest_fish_grams, team_number=heaviest.team_number, team_names=heaviest.team_names,
        )
    if lightest:
        lightest = PrizeFish(
            grams=lightest.lightest_fish_grams, team_number=lightest.team_number, team_names=lightest.team_names,
        )
    return heaviest, lightest


def leaderboard_stats(rows: List[LeaderboardRow]) -> Dict[str, Any]:
    total_catfish = sum(r.catfish_count for r in rows)
    average = round(total_catfish / len(rows), 1) if rows else 0
    return {"teams": len(rows), "totalCatfish": total_catfish, "average": average}


def latest_entries(ranked_overall: List[LeaderboardRow], limit: int = config.LATEST_ENTRIES_LIMIT) -> List[LeaderboardRow]:
    """Most recent weigh-ins, carrying their overall rank."""
    dated = [r for r in ranked_overall if r.created_at is not None]
    dated.sort(key=lambda r: (r.created_at, r.catch_id), reverse=True)
    return dated[:limit]


def division_counts(teams: Iterable[Team]) -> Dict[str, int]:
    teams = list(teams)
    return {
        Division.ALL.value: len(teams),
        Division.WOMEN.value: sum(1 for t in teams if t.is_women),
        Division.JUNIORS.value: sum(1 for t in teams if t.is_junior),
    }


def status_counts(rows: Iterable[LeaderboardRow]) -> Dict[str, int]:
    counts = {s.value: 0 for s in CatchStatus}
    for row in rows:
        counts[row.status.value] += 1
    return counts


def compute_standings(
    rows: List[LeaderboardRow],
    teams: List[Team],
    event_state: Optional[EventState] = None,
    division: Division = Division.ALL,
) -> Dict[str, Any]:
    ranked = rank_leaderboard(rows, division)
    heaviest, lightest = prize_fish(ranked)
    overall = ranked if division == Division.ALL else rank_leaderboard(rows)
    return {
        "division": division.value,
        "standings": ranked,
        "heaviestFish": heaviest,
        "lightestFish": lightest,
        "stats": leaderboard_stats(rows),
        "latestEntries": latest_entries(overall),
        "divisionCounts": division_counts(teams),
        "eventState": event_state,
    }
