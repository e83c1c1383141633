from feedback_bot.services.result import Result


class TestResult:
    def test_success(self):
        result = Result.success(42)
        assert result.ok is True
        assert result.value == 42
        assert result.error is None

    def test_failure_keeps_context_value(self):
        result = Result.failure("You are already answering question #7", "already_yours", value="question")
        assert result.ok is False
        assert result.error_code == "already_yours"
        assert result.value == "question"

    def test_failure_default_code(self):
        assert Result.failure("Question already taken").error_code == "unknown"
