"""
Privacy-preserving verification of a completed pool round.

Only the pool's public balance and the contribution records are consulted;
individual amounts are never available here.

Fairness is checked in aggregate: the total must reach
`minimum_threshold * expected_contributors`. That is consistent with every
contributor having met the threshold, but it cannot prove it. One contributor
sending nothing while another covers their share passes the same check. This
is what hiding individual amounts costs, and it is deliberate.

Participation holds only when the verified count equals the expected count
exactly; more records than expected contributors is reported, not raised.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional, Sequence

from .errors import VerificationInconsistent
from .models import ContributionRecord, NoteVisibility, VerificationSummary


def verify_contributions(total_visible_amount: int,
                         records: Sequence[ContributionRecord],
                         expected_contributor_count: int,
                         minimum_contribution_threshold: int,
                         timestamp: Optional[str] = None) -> VerificationSummary:
    if expected_contributor_count <= 0:
        raise ValueError("expected_contributor_count must be positive")
    if minimum_contribution_threshold < 0:
        raise ValueError("minimum_contribution_threshold must not be negative")
    if total_visible_amount < 0:
        raise VerificationInconsistent(f"Pool balance is negative: {total_visible_amount}")

    exposed = [r.contributor for r in records if r.visibility is not NoteVisibility.PRIVATE]
    if exposed:
        raise VerificationInconsistent(
            f"Contributions were not private: {', '.join(exposed)}"
        )

    contributor_count = sum(1 for r in records if r.verified)
    if contributor_count and total_visible_amount == 0:
        raise VerificationInconsistent(
            f"{contributor_count} verified contributions but nothing visible in the pool"
        )

    minimum_expected_total = minimum_contribution_threshold * expected_contributor_count

    return VerificationSummary(
        total_visible_amount=total_visible_amount,
        contributor_count=contributor_count,
        all_participated=contributor_count == expected_contributor_count,
        fair_contributions=total_visible_amount >= minimum_expected_total,
        # Asserted above: every record came from a private note
        privacy_preserved=True,
        expected_contributor_count=expected_contributor_count,
        verification_timestamp=timestamp or datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    )
