from exception_logger import ExceptionLogger


def test_exceptions_are_written_with_module_and_trace(tmp_path):
    log_file = tmp_path / "logs" / "errors.log"
    logger = ExceptionLogger(str(log_file))

    try:
        raise ValueError("bad row")
    except ValueError as exc:
        logger.log_exception(exc, "entry_store", "loading sheet")

    text = log_file.read_text(encoding="utf-8")
    assert "[ENTRY_STORE] bad row" in text
    assert "Context: loading sheet" in text
    assert "Traceback" in text


def test_errors_go_to_console_without_log_file(capsys):
    ExceptionLogger().log_error("sheet unavailable", "router", "fallback")
    assert capsys.readouterr().out.strip() == "Error in router: sheet unavailable | Context: fallback"
