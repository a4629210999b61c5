"""Shared identities and test doubles."""

from medregistry.services.oracle import OracleError

ADMIN = "admin-0x01"
OWNER = "owner-0x02"
ORACLE = "oracle-0x0a"
DOCTOR = "dr-house"
OTHER_DOCTOR = "dr-wilson"
PATIENT = "patient-alice"
OTHER_PATIENT = "patient-bob"
STRANGER = "stranger-0xff"


class FakeOracle:
    """Stands in for OracleClient; records every submitted job.

    `on_submit`, when set, is called with the job before `submit_check`
    returns, the way a fast oracle can call back while its submission is
    still being answered.
    """

    def __init__(self):
        self.jobs = []
        self.fail = False
        self.on_submit = None

    def submit_check(self, job):
        if self.fail:
            raise OracleError("Oracle unreachable: connection refused")
        self.jobs.append(job)
        if self.on_submit is not None:
            self.on_submit(job)
        return f"run-{len(self.jobs)}"
