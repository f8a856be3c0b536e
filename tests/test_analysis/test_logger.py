# Tests for logging utilities

import json
import logging

import yaml
from a2c_ppo.analysis.logger import ExperimentLogger, MetricsLogger, setup_logging


class TestSetupLogging:

    def test_handlers_not_duplicated(self, temp_dir):
        """Repeated setup replaces handlers instead of stacking them."""
        setup_logging("INFO")
        logger = setup_logging("WARNING", log_file=temp_dir / "run.log")
        assert len(logger.handlers) == 2
        assert logger.name == "a2c_ppo"

        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

    def test_package_loggers_propagate(self, temp_dir):
        log_file = temp_dir / "run.log"
        logger = setup_logging("WARNING", log_file=log_file)

        logging.getLogger("a2c_ppo.training.trainer").info("hello from trainer")
        for handler in logger.handlers:
            handler.flush()

        assert "hello from trainer" in log_file.read_text()

        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()


class TestMetricsLogger:

    def test_csv_and_summary(self, temp_dir):
        metrics_logger = MetricsLogger(temp_dir)
        metrics_logger.log(0, {"value_loss": 1.0, "entropy": 0.6})
        metrics_logger.log(1, {"value_loss": 0.5, "entropy": 0.5})
        metrics_logger.save_summary()

        lines = (temp_dir / "metrics.csv").read_text().strip().splitlines()
        assert lines[0].startswith("update,timestamp,value_loss,entropy")
        assert len(lines) == 3

        with open(temp_dir / "metrics.json") as f:
            history = json.load(f)
        assert [record["update"] for record in history] == [0, 1]

    def test_series_and_latest(self, temp_dir):
        metrics_logger = MetricsLogger(temp_dir)
        metrics_logger.log(0, {"value_loss": 1.0})
        metrics_logger.log(1, {"value_loss": 0.5, "kl_divergence": 0.01})

        assert metrics_logger.get_metric_series("value_loss") == [1.0, 0.5]
        assert metrics_logger.get_latest("kl_divergence") == 0.01
        assert metrics_logger.get_latest("missing") is None


class TestExperimentLogger:

    def test_directory_layout(self, temp_dir, config):
        exp_logger = ExperimentLogger("unit", base_dir=temp_dir, level="WARNING")
        exp_logger.save_config(config)

        assert exp_logger.experiment_dir.name.endswith("_unit")
        assert (exp_logger.logs_dir / "train.log").exists()
        with open(exp_logger.experiment_dir / "config.yaml") as f:
            assert yaml.safe_load(f) == config

        for handler in list(exp_logger.logger.handlers):
            exp_logger.logger.removeHandler(handler)
            handler.close()
