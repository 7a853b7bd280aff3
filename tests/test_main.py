import json

from main import main


def test_ask_answers_from_json_knowledge_base(monkeypatch, tmp_path, capsys):
    kb = tmp_path / "qa_script.json"
    kb.write_text(json.dumps([
        {"question": "How do I reset my password?", "answer": "Use the Forgot Password link."},
    ]), encoding="utf-8")
    monkeypatch.delenv("SHEETASSIST_SHEET_ID", raising=False)
    monkeypatch.setenv("SHEETASSIST_QA_FILE", str(kb))

    assert main(["ask", "how", "can", "I", "reset", "my", "password"]) == 0

    out = capsys.readouterr().out
    assert "Use the Forgot Password link." in out
    assert "source=knowledge-base" in out


def test_ask_reports_generation_errors(monkeypatch, tmp_path, capsys):
    monkeypatch.delenv("SHEETASSIST_SHEET_ID", raising=False)
    monkeypatch.setenv("SHEETASSIST_QA_FILE", str(tmp_path / "missing.json"))
    monkeypatch.setenv("OPENROUTER_API_KEY", "")

    assert main(["ask", "what is the weather today"]) == 1
    assert "not configured" in capsys.readouterr().err
