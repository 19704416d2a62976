import json

import pytest

from app.core.errors import UnrecognizedSchemaError
from app.grading.adapter import (
    SchemaCache,
    dump_rubric_state,
    load_boundary,
    load_rubric,
    normalize,
    parse_rubric_state,
)
from app.grading.calculator import percentage, scheme_max_points, total_score
from app.grading.templates import list_templates
from app.schemas.grading import GradingBoundary, RubricGrade, RubricScheme


def test_legacy_items_become_four_levels():
    raw = json.dumps({"items": [{"maxPoints": 8, "criteria": ["great", "ok", "meh", "bad"]}]})

    scheme = normalize(raw)

    assert isinstance(scheme, RubricScheme)
    assert len(scheme.criteria) == 1
    levels = scheme.criteria[0].levels
    assert [level.points for level in levels] == [8, 6, 4, 2]
    assert [level.name for level in levels] == ["Excellent", "Good", "Satisfactory", "Needs Improvement"]
    assert [level.description for level in levels] == ["great", "ok", "meh", "bad"]
    assert [level.color for level in levels] == ["#4CAF50", "#8BC34A", "#FFEB3B", "#FF9800"]


def test_legacy_points_round_down():
    scheme = normalize({"items": [{"maxPoints": 5}]})
    assert [level.points for level in scheme.criteria[0].levels] == [5, 3, 2, 1]


def test_legacy_item_defaults(legacy_scheme):
    scheme = normalize({"items": [{"criteria": ["only one"]}, {}]})

    first, second = scheme.criteria
    assert first.id == "criteria-0"
    assert first.title == "Criteria 1"
    assert second.title == "Criteria 2"
    assert [level.points for level in first.levels] == [4, 3, 2, 1]
    assert [level.description for level in first.levels] == [
        "only one", "Good performance", "Adequate performance", "Below expectations",
    ]
    assert second.levels[0].description == "Outstanding performance"

    named = normalize(legacy_scheme)
    assert named.name == "Essay"
    assert [c.id for c in named.criteria] == ["thesis", "style"]


def test_legacy_level_texts_must_be_a_list():
    scheme = normalize({"items": [{"maxPoints": 4, "criteria": "great"}, {"criteria": ["fine", 3, None]}]})

    first, second = scheme.criteria
    assert [level.description for level in first.levels] == [
        "Outstanding performance", "Good performance", "Adequate performance", "Below expectations",
    ]
    assert [level.description for level in second.levels][:3] == ["fine", "Good performance", "Adequate performance"]


def test_canonical_scheme_passes_through(canonical_scheme):
    scheme = normalize(json.dumps(canonical_scheme))

    assert scheme.id == "scheme-1"
    assert [level.points for level in scheme.criteria[0].levels] == [4, 3]


def test_canonical_wins_over_items():
    scheme = normalize({"criteria": [], "items": [{"maxPoints": 8}]})
    assert scheme.criteria == []


@pytest.mark.parametrize("raw", [
    "{not json",
    json.dumps({"title": "neither"}),
    json.dumps("just a string"),
    json.dumps({"items": "nope"}),
    json.dumps({"items": [1, 2]}),
    json.dumps({"criteria": [{"title": "no id"}]}),
    json.dumps([{"grade": "A"}]),
])
def test_unrecognized_input_raises(raw):
    with pytest.raises(UnrecognizedSchemaError):
        normalize(raw)


def test_load_rubric_degrades_to_empty_scheme(caplog):
    scheme = load_rubric("{broken", scheme_id="ms-1")

    assert scheme == RubricScheme(id="ms-1")
    assert "ms-1" in caplog.text


def test_load_rubric_rejects_boundaries():
    assert load_rubric(json.dumps({"boundaries": []}), "ms-2").criteria == []


def test_load_boundary_degrades_to_empty_set():
    assert load_boundary("[1, 2", boundary_id="gb-1") == GradingBoundary(id="gb-1")
    assert load_boundary(None).boundaries == []


def test_boundary_encodings():
    canonical = normalize({"boundaries": [{"grade": "A", "minPercentage": 90, "maxPercentage": 100}]})
    bare_list = normalize([{"grade": "A", "minPercentage": 90, "maxPercentage": 100}])
    snake = normalize([{"grade": "A", "min_percentage": 90, "max_percentage": 100}])

    for parsed in (canonical, bare_list, snake):
        assert isinstance(parsed, GradingBoundary)
        assert parsed.boundaries[0].grade == "A"
        assert parsed.boundaries[0].min_percentage == 90
        assert parsed.boundaries[0].max_percentage == 100


def test_legacy_conversion_keeps_score_ordering():
    maxima = [3, 8, 5, 12, 1]
    scheme = normalize({"items": [{"id": f"i{n}", "maxPoints": n} for n in maxima]})

    scores = []
    for criterion in scheme.criteria:
        single = RubricScheme(criteria=[criterion])
        grade = RubricGrade(selections={criterion.id: "excellent"})
        scores.append(total_score(grade, single))
        assert percentage(grade, single) == 100

    assert scores == maxima
    assert scheme_max_points(scheme) == sum(maxima)


def test_schema_cache_reuses_parsed_versions(canonical_scheme):
    cache = SchemaCache()
    text = json.dumps(canonical_scheme)

    first = cache.rubric("scheme-1", text)
    assert cache.rubric("scheme-1", text) is first

    changed = dict(canonical_scheme, name="Lab report v2")
    second = cache.rubric("scheme-1", json.dumps(changed))
    assert second is not first
    assert first.name == "Lab report"
    assert second.name == "Lab report v2"


def test_parse_rubric_state():
    raw = json.dumps([
        {"criteriaId": "c1", "selectedLevelId": "good", "comments": "Nice"},
        {"criteriaId": "c2", "selectedLevelId": "", "points": 2.5},
        {"selectedLevelId": "orphan"},
        "junk",
    ])

    grade = parse_rubric_state(raw)

    assert grade.selections == {"c1": "good"}
    assert grade.overrides == {"c2": 2.5}
    assert grade.comments == {"c1": "Nice"}


@pytest.mark.parametrize("raw", [None, "", "{oops", json.dumps({"criteriaId": "c1"})])
def test_unreadable_rubric_state_is_empty(raw):
    assert parse_rubric_state(raw) == RubricGrade()


def test_dump_rubric_state_is_readable_back():
    grade = RubricGrade(selections={"c1": "good"}, overrides={"c2": 1.0}, comments={"c1": "Nice"})

    entries = json.loads(dump_rubric_state(grade))

    assert {e["criteriaId"] for e in entries} == {"c1", "c2"}
    assert parse_rubric_state(dump_rubric_state(grade)) == grade


def test_templates_normalize():
    for template in list_templates():
        parsed = normalize(template.structured)
        if template.kind == "rubric":
            assert isinstance(parsed, RubricScheme)
            assert parsed.criteria
        else:
            assert isinstance(parsed, GradingBoundary)
            assert parsed.boundaries
