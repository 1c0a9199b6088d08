"""Shared fixtures: portal markup samples, a controllable clock, keys."""

from datetime import datetime, timedelta, timezone

import pytest

from tracker.app.core.cache import InMemoryCache, reset_cache
from tracker.app.schemas import CacheKey


SUMMARY_MARKUP = """
<html><body>
<div class="tt-box-new">
  <div class="tt-period-number"><span>Data Structures</span><span>(CS201)</span></div>
  <div class="tt-period-name">Teacher : Jane Doe</div>
  <div class="tt-period-name">From : 01 Jul 2025 TO : 28 Nov 2025</div>
  <div class="tt-period-name">Delivered : 20</div>
  <div class="tt-period-name">Attended : 14</div>
  <div class="tt-period-name">Absent : 3</div>
  <div class="tt-period-name">DL : 2 ML : 1</div>
  <div class="tt-period-name">Total Percentage : 85.00 %</div>
  <div class="tt-period-name">Total Approved DL : 2</div>
  <div class="tt-period-name">Total Approved ML : 3</div>
</div>
<div class="tt-box-new">
  <div class="tt-period-number"><span>Operating Systems</span><span>(CS301)</span></div>
  <div class="tt-period-name">Teacher&nbsp;:&nbsp;John&nbsp;Smith</div>
  <div class="tt-period-name">Delivered&nbsp;:&nbsp;20</div>
  <div class="tt-period-name">Attended&nbsp;:&nbsp;13</div>
  <div class="tt-period-name">DL : 1 ML : 0</div>
  <div class="tt-period-name">Total Approved ML : 5</div>
</div>
</body></html>
"""

UPDATED_SUMMARY_MARKUP = """
<div class="tt-box-new">
  <div class="tt-period-number"><span>Data Structures</span><span>(CS201)</span></div>
  <div class="tt-period-name">Delivered : 21</div>
  <div class="tt-period-name">Attended : 15</div>
</div>
"""


def register_markup(subjects):
    """Build register markup.

    ``subjects`` is a list of ``(subject_header, lecture_headers, statuses)``
    where headers are lists of ``<br>``-separated parts.
    """
    blocks = []
    for subject_header, lectures, statuses in subjects:
        header_cells = "".join(f"<th>{'<br>'.join(parts)}</th>" for parts in lectures)
        status_cells = "".join(f"<td>{status}</td>" for status in statuses)
        blocks.append(
            "<thead>"
            "<tr><th>Attendance Register</th></tr>"
            f"<tr><th>{'<br>'.join(subject_header)}</th>{header_cells}<th>Total</th><th>%age</th></tr>"
            "</thead>"
            f"<tbody><tr><td>Status</td>{status_cells}<td>2/3</td><td>66.67</td></tr></tbody>"
        )
    return f"<html><body><table>{''.join(blocks)}</table></body></html>"


REGISTER_MARKUP = register_markup(
    [
        (
            ["Data Structures", "(CS201)"],
            [["1", "01-07-2025", "3"], ["2", "02-07-2025", "4"], ["3", "03-07-2025", "1"]],
            ["1", "X", "DL"],
        ),
        (
            ["Operating Systems", "(CS301)"],
            [["1", "01-07-2025", "2"], ["2", "04-07-2025", "2"]],
            ["ML", "2"],
        ),
    ]
)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now = self.now + timedelta(**delta)


@pytest.fixture
def summary_markup():
    return SUMMARY_MARKUP


@pytest.fixture
def register_html():
    return REGISTER_MARKUP


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 9, 1, 8, 0, tzinfo=timezone.utc))


@pytest.fixture
def cache_key():
    return CacheKey(user_id="42", institution="abc", session_id="7")


@pytest.fixture
def memory_backend():
    backend = InMemoryCache()
    yield backend
    reset_cache()
