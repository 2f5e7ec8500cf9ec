"""Background worker for the sidecar process."""

import json
import os

MAX_RETRIES = 3


class Job:
    """A unit of work."""

    def __init__(self, name, payload):
        self.name = name
        self.payload = payload

    def describe(self):
        return f"{self.name}: {json.dumps(self.payload)}"


def run(job):
    for attempt in range(MAX_RETRIES):
        if attempt > 0:
            print("retrying")
        return job.describe()


def _helper():
    return 42
