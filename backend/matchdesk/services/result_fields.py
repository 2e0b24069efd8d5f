"""
backend/matchdesk/services/result_fields.py

Purpose:
    Named result fields that prediction expressions can reference, derived
    per sport from a canonical match. Common fields come from the full-time
    score; sport tables add period/set/quarter breakdowns from score.details.
    Anything else is reachable as a dotted path into the match
    (e.g. "score.details.halftime.home", "sport_specific.elapsed").

Dependencies:
    - matchdesk.models.sports
"""

from __future__ import annotations

from typing import Any, Callable

from matchdesk.models.sports import Match
from matchdesk.providers.base import dig


class UnknownFieldError(KeyError):
    def __init__(self, name: str, sport: str) -> None:
        self.name = name
        self.sport = sport
        super().__init__(name)

    def __str__(self) -> str:
        return f"Unknown result field '{self.name}' for {self.sport}"


def _num(value: Any) -> Any:
    """Scores arrive as ints, floats or numeric strings; normalize the strings."""
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            try:
                return float(text)
            except ValueError:
                return value
    return value


def _both(a: Any, b: Any, op: Callable[[Any, Any], Any]) -> Any:
    if a is None or b is None:
        return None
    try:
        return op(a, b)
    except TypeError:
        # Non-numeric provider values; the field reads as missing.
        return None


def _pair_fields(prefix: str, home: Any, away: Any) -> dict[str, Any]:
    home, away = _num(home), _num(away)
    return {
        f"{prefix}_home": home,
        f"{prefix}_away": away,
        f"{prefix}_total": _both(home, away, lambda h, a: h + a),
        f"{prefix}_diff": _both(home, away, lambda h, a: h - a),
    }


def common_fields(match: Match) -> dict[str, Any]:
    """Full-time score fields shared by every sport."""
    home, away = _num(match.score.home), _num(match.score.away)
    total = _both(home, away, lambda h, a: h + a)
    fields = {
        "home": home,
        "away": away,
        "total": total,
        "diff": _both(home, away, lambda h, a: h - a),
        "draw": _both(home, away, lambda h, a: h == a),
        "home_win": _both(home, away, lambda h, a: h > a),
        "away_win": _both(home, away, lambda h, a: a > h),
        "btts": _both(home, away, lambda h, a: h > 0 and a > 0),
    }
    for alias in ("goals", "score", "points", "sets", "runs"):
        fields[f"home_{alias}"] = home
        fields[f"away_{alias}"] = away
        fields[f"total_{alias}"] = total
    return fields


# Fields that only depend on the full-time score.
FULL_TIME_FIELDS = frozenset(common_fields(Match(id="_")))


def _football(match: Match) -> dict[str, Any]:
    details = match.score.details
    fields: dict[str, Any] = {}
    for prefix, key in (("ht", "halftime"), ("ft", "fulltime"), ("et", "extratime"), ("pen", "penalty")):
        fields.update(_pair_fields(prefix, dig(details, key, "home"), dig(details, key, "away")))
    fields.update(_pair_fields(
        "sh",
        _both(fields["ft_home"], fields["ht_home"], lambda f, h: f - h),
        _both(fields["ft_away"], fields["ht_away"], lambda f, h: f - h),
    ))
    return fields


def _basketball(match: Match) -> dict[str, Any]:
    details = match.score.details
    fields: dict[str, Any] = {}
    for n in range(1, 5):
        fields.update(_pair_fields(
            f"q{n}", dig(details, "home", f"quarter_{n}"), dig(details, "away", f"quarter_{n}"),
        ))
    fields.update(_pair_fields("ot", dig(details, "home", "overtime"), dig(details, "away", "overtime")))
    return fields


def _halves(match: Match) -> dict[str, Any]:
    details = match.score.details
    fields: dict[str, Any] = {}
    for prefix, key in (("ht", "first_half"), ("first_half", "first_half"), ("second_half", "second_half"), ("ot", "overtime")):
        fields.update(_pair_fields(prefix, dig(details, "home", key), dig(details, "away", key)))
    return fields


def _volleyball(match: Match) -> dict[str, Any]:
    details = match.score.details
    fields: dict[str, Any] = {}
    for n in range(1, 6):
        fields.update(_pair_fields(f"set{n}", dig(details, "home", f"set{n}"), dig(details, "away", f"set{n}")))
    return fields


def _baseball(match: Match) -> dict[str, Any]:
    details = match.score.details
    fields: dict[str, Any] = {}
    for key in ("hits", "errors"):
        fields.update(_pair_fields(key, dig(details, "home", key), dig(details, "away", key)))
    return fields


def _hockey(match: Match) -> dict[str, Any]:
    details = match.score.details
    fields: dict[str, Any] = {}
    for prefix, key in (("p1", "first"), ("p2", "second"), ("p3", "third"), ("ot", "overtime"), ("so", "penalties")):
        fields.update(_pair_fields(prefix, dig(details, "home", key), dig(details, "away", key)))
    return fields


def _horse(match: Match) -> dict[str, Any]:
    order = match.score.details.get("arrival")
    return {
        "first": _num(match.score.home),
        "second": _num(match.score.away),
        "third": _num(dig(order, 2, 0)),
        "winner": _num(match.score.home),
        "runners": match.sport_specific.get("runners"),
    }


_SPORT_FIELDS: dict[str, Callable[[Match], dict[str, Any]]] = {
    "football": _football,
    "basketball": _basketball,
    "handball": _halves,
    "rugby": _halves,
    "volleyball": _volleyball,
    "baseball": _baseball,
    "hockey": _hockey,
    "horse": _horse,
}


class ResultFields:
    """Resolves expression field names against one match; records what was read."""

    def __init__(self, match: Match, sport: str) -> None:
        self.match = match
        self.sport = sport
        self._fields = common_fields(match)
        extra = _SPORT_FIELDS.get(sport)
        if extra is not None:
            self._fields.update(extra(match))
        self._document: dict[str, Any] | None = None
        self.observed: dict[str, Any] = {}

    @property
    def full_time_score_present(self) -> bool:
        return self.match.score.home is not None and self.match.score.away is not None

    def only_full_time_read(self) -> bool:
        return all(name in FULL_TIME_FIELDS for name in self.observed)

    def resolve(self, name: str) -> Any:
        key = name.strip().lower()
        if key in self._fields:
            value = self._fields[key]
        elif "." in key:
            if self._document is None:
                self._document = self.match.model_dump(mode="json")
            path = key.split(".")
            if path[0] not in self._document:
                raise UnknownFieldError(name, self.sport)
            value = _num(dig(self._document, *path))
        else:
            raise UnknownFieldError(name, self.sport)
        self.observed[key] = value
        return value
