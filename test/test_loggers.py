import logging

from near_workspaces.utils.loggers import get_logger, set_level


class TestLoggers:
    """测试日志配置"""

    def test_records_are_not_repeated_by_root(self, capsys):
        root = logging.getLogger()
        handler = logging.StreamHandler()
        root.addHandler(handler)
        try:
            logger = get_logger("near_workspaces.test_once", level="INFO")
            logger.info("sandbox ready")
        finally:
            root.removeHandler(handler)

        captured = capsys.readouterr()
        assert captured.out.count("sandbox ready") == 1
        assert "sandbox ready" not in captured.err

    def test_single_handler_on_repeated_setup(self):
        get_logger("near_workspaces.test_handlers")
        logger = get_logger("near_workspaces.test_handlers")
        assert len(logger.handlers) == 1
        assert logger.propagate is False

    def test_set_level_updates_package_loggers(self):
        logger = get_logger("near_workspaces.test_level", level="DEBUG")
        other = logging.getLogger("other_package.test_level")
        other.setLevel(logging.DEBUG)

        set_level("ERROR")

        assert logger.level == logging.ERROR
        assert other.level == logging.DEBUG
