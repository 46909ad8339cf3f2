from uuid import uuid4


def generate_run_id() -> str:
    """Return a fresh benchmark run identifier.

    Run ids are random uuid4 strings; a run id is never reused, so two runs
    started in the same second still upsert distinct aggregate rows.
    """
    return str(uuid4())
