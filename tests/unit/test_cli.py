# Copyright (C) 2025 Ivan Bondarenko
#
# This file is part of Kurral Engine.
#
# Kurral Engine is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.

"""Unit tests for the kurral-cli commands."""

import json

import pytest

from kurral_cli.pipeline_cmd import create_parser, run


@pytest.fixture(autouse=True)
def offline_env(monkeypatch, tmp_path):
    for name in ("OPENAI_API_KEY", "KURRAL_ENV", "FIRESTORE_EMULATOR_HOST", "FIREBASE_AUTH_EMULATOR_HOST"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def _write(tmp_path, name, payload):
    path = tmp_path / name
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


def test_parser_requires_a_command():
    with pytest.raises(SystemExit):
        create_parser().parse_args([])


def test_pipeline_run_emits_outcome(tmp_path, capsys):
    item_file = _write(tmp_path, "item.json", {
        "id": "p1",
        "author_id": "u1",
        "text": "The central bank raised interest rates by 2% yesterday.",
    })
    comments_file = _write(tmp_path, "comments.json", [
        {"id": "c1", "author_id": "u2", "text": "Source? I read it was 1%."},
    ])

    code = run(["pipeline", "run", item_file, "--comments", comments_file])

    assert code == 0
    out = json.loads(capsys.readouterr().out)
    assert out["outcome"] == "completed"
    assert out["item"]["id"] == "p1"
    assert out["item"]["moderation_status"] == "needs_review"
    assert out["item"]["claims"]
    assert out["kurral_score"]["score"] >= 0
    assert out["value_stats"] is not None


def test_pipeline_run_missing_file(tmp_path, capsys):
    code = run(["pipeline", "run", str(tmp_path / "nope.json")])

    assert code == 1
    assert "File not found" in capsys.readouterr().err


def test_pipeline_run_rejects_non_object(tmp_path, capsys):
    item_file = _write(tmp_path, "item.json", ["not", "an", "object"])

    assert run(["pipeline", "run", item_file]) == 1
    assert "must be an object" in capsys.readouterr().err


def test_pipeline_run_rejects_invalid_document(tmp_path, capsys):
    item_file = _write(tmp_path, "item.json", {"text": "no id or author"})

    assert run(["pipeline", "run", item_file]) == 1
    assert "Invalid input document" in capsys.readouterr().err


def test_policy_eval_blocks_confident_false(tmp_path, capsys):
    claims_file = _write(tmp_path, "claims.json", {
        "claims": [{"id": "c1", "text": "Vaccines contain microchips", "risk_level": "high"}],
        "fact_checks": [{"id": "c1-fact-check", "claim_id": "c1", "verdict": "false", "confidence": 0.9}],
    })

    assert run(["policy", "eval", claims_file]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["status"] == "blocked"
    assert out["escalate_to_human"] is False
    assert len(out["reasons"]) == 1


def test_policy_eval_threshold_flag(tmp_path, capsys):
    claims_file = _write(tmp_path, "claims.json", {
        "claims": [{"id": "c1", "text": "Claim"}],
        "fact_checks": [{"id": "c1-fact-check", "claim_id": "c1", "verdict": "false", "confidence": 0.8}],
    })

    assert run(["policy", "eval", claims_file, "--threshold", "0.85"]) == 0
    assert json.loads(capsys.readouterr().out)["status"] == "clean"


def test_policy_eval_without_claims(tmp_path, capsys):
    claims_file = _write(tmp_path, "claims.json", {"claims": [], "fact_checks": []})

    assert run(["policy", "eval", claims_file]) == 0
    out = json.loads(capsys.readouterr().out)
    assert out["status"] == "clean"
    assert out["escalate_to_human"] is False


def test_policy_eval_rejects_bad_shape(tmp_path, capsys):
    claims_file = _write(tmp_path, "claims.json", {"claims": "nope"})

    assert run(["policy", "eval", claims_file]) == 1
    assert "Policy JSON" in capsys.readouterr().err
