"""
Results Writer
==============
Serializes a RunResult into summary JSON for post-mortem or automation.
"""
import json
import logging
import os

from checkfix.models.run_result import RunResult

logger = logging.getLogger(__name__)


class ResultsWriter:
    """
    Service responsible for compiling the outcome of a checkfix run
    into a structured JSON file.
    """

    @staticmethod
    def build_payload(result: RunResult) -> dict:
        data = result.model_dump(mode="json")
        data["exit_code"] = result.exit_code
        return data

    @staticmethod
    def write_results(result: RunResult, output_path: str = "results.json") -> bool:
        """
        Write the result as JSON. Returns False (and logs) on I/O failure.
        """
        try:
            abs_output = os.path.abspath(output_path)
            parent = os.path.dirname(abs_output)
            if parent:
                os.makedirs(parent, exist_ok=True)
            logger.info("Writing results to %s", abs_output)

            with open(abs_output, "w", encoding="utf-8") as f:
                json.dump(ResultsWriter.build_payload(result), f, indent=2)

            return True

        except OSError as e:
            logger.error("Failed to write %s: %s", output_path, e)
            return False
