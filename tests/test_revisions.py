import io
import json

import pytest

from ecspresso.revisions import Revision, Revisions, parse_revision_spec


@pytest.fixture
def revs():
    return Revisions([Revision("app:3", "current"), Revision("app:2", "")])


def _decode_stream(text):
    decoder = json.JSONDecoder()
    docs = []
    pos = 0
    text = text.strip()
    while pos < len(text):
        doc, end = decoder.raw_decode(text, pos)
        docs.append(doc)
        pos = end
        while pos < len(text) and text[pos].isspace():
            pos += 1
    return docs


def test_header(revs):
    assert revs.header() == ["Name", "In Use"]


def test_cols():
    assert Revision("app:7", "service").cols() == ["app:7", "service"]


def test_output_tsv(revs):
    out = io.StringIO()
    revs.output_tsv(out)
    assert out.getvalue() == "app:3\tcurrent\napp:2\t\n"


def test_output_json_round_trip(revs):
    out = io.StringIO()
    revs.output_json(out)
    assert _decode_stream(out.getvalue()) == [
        {"name": "app:3", "in_use": "current"},
        {"name": "app:2", "in_use": ""},
    ]


def test_output_json_is_indented(revs):
    out = io.StringIO()
    revs.output_json(out)
    assert out.getvalue().startswith("{\n  ")
    assert out.getvalue().endswith("}\n")


def test_empty_outputs():
    empty = Revisions()
    for method in (empty.output_json, empty.output_tsv):
        out = io.StringIO()
        method(out)
        assert out.getvalue() == ""


def test_output_table_shape(revs):
    out = io.StringIO()
    revs.output_table(out)
    lines = out.getvalue().splitlines()
    assert len(lines) == 2 + len(revs)
    assert len({len(line) for line in lines}) == 1
    assert set(lines[1]) == {"+", "-"}
    assert all(line.startswith("|") and line.endswith("|") for i, line in enumerate(lines) if i != 1)
    assert "NAME" in lines[0]
    assert lines[2] == "| app:3 | current |"
    assert "app:2" in lines[3]


def test_output_table_order_follows_list(revs):
    out = io.StringIO()
    revs.output_table(out)
    body = out.getvalue()
    assert body.index("app:3") < body.index("app:2")


def test_parse_revision_latest():
    assert parse_revision_spec("app", "latest") == "app"


def test_parse_revision_number():
    assert parse_revision_spec("app", "42") == "app:42"


def test_parse_revision_current_needs_service():
    assert parse_revision_spec("app", "current") is None


@pytest.mark.parametrize("spec", ["abc", "", "4.2", "1_000", "99999999999999999999"])
def test_parse_revision_invalid(spec):
    with pytest.raises(ValueError, match="invalid revision"):
        parse_revision_spec("app", spec)