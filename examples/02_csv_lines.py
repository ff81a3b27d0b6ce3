"""Example 02 — CSV lines to typed columns.

Scenario
--------
A sensor gateway ships readings as semicolon-separated text.  The built-in
``csv-stage`` turns them into typed columns; one column carries a JSON
document and one is dropped on the way through.

The pipeline is described as plain JSON, the same document the CLI reads::

    pipestage run pipeline.json

Run this script from the project root::

    python -m examples.02_csv_lines
"""

from __future__ import annotations

import json
import tempfile
from pathlib import Path

from pipestage.core.pipeline import Pipeline
from pipestage.models.batch import Batch
from pipestage.observability.logging import configure_logging

READINGS = """\
st-01;21.5;true;{"fw": "1.2"};ignored
st-02;NA;false;{"fw": "1.3"};ignored
st-03;19.25;true;null;ignored
"""

DEFINITION = {
    "name": "sensor-readings",
    "extract": {"kind": "test-lines", "config": {"value": READINGS}},
    "transform": {
        "kind": "csv-stage",
        "config": {
            "delimiter": ";",
            "escape": None,
            "quote": None,
            "null_string": "NA",
            "columns": [
                {"name": "station"},
                {"name": "temp_c", "column_type": "float64"},
                {"name": "online", "column_type": "bool"},
                {"name": "meta", "column_type": "json"},
                {"name": "trailer", "skip": True},
            ],
        },
    },
    "max_batches": 1,
}


def main() -> None:
    configure_logging(level="INFO", fmt="console")

    with tempfile.TemporaryDirectory(prefix="pipestage_example_") as tmpdir:
        path = Path(tmpdir) / "pipeline.json"
        path.write_text(json.dumps(DEFINITION, indent=2), encoding="utf-8")
        print(f"[gen] Wrote pipeline definition to {path}")

        pipeline = Pipeline.from_definition(json.loads(path.read_text(encoding="utf-8")))

        def show(batch: Batch) -> None:
            print(batch)
            print(batch.to_dataframe().to_string(index=False))

        result = pipeline.run(on_batch=show)
        print(result.summary())


if __name__ == "__main__":
    main()
