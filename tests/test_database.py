from feedback_bot.database import build_engine


def test_engine_echo_follows_debug_flag(tmp_path):
    quiet = build_engine(f"sqlite:///{tmp_path / 'quiet.db'}")
    verbose = build_engine(f"sqlite:///{tmp_path / 'verbose.db'}", echo=True)
    try:
        assert quiet.echo is False
        assert verbose.echo is True
    finally:
        quiet.dispose()
        verbose.dispose()
