import unittest

from pytest import mark

from eth_validator_consolidator.eligibility import ConsolidationEligibility, is_consolidable
from eth_validator_consolidator.errors import UpstreamError
from eth_validator_consolidator.models import CredentialType
from tests.factories import (
    OTHER_ADDRESS,
    PUBKEY_S1,
    PUBKEY_S2,
    PUBKEY_S3,
    PUBKEY_T,
    SENDER,
    FakeBeaconchain,
    FakeChainParameters,
    validator,
)


@mark.parametrize("cred_type", [CredentialType.NONE, CredentialType.BLS])
@mark.parametrize("status", ["active_online", "active_offline", "deposited"])
def test_is_consolidable_requires_execution_credentials(cred_type: CredentialType, status: str) -> None:
    assert not is_consolidable(cred_type, 0, 256, 1_000_000, status)


def test_is_consolidable_activation_age() -> None:
    assert is_consolidable(CredentialType.EXECUTION, 1000, 256, 1257, "active_online")
    assert not is_consolidable(CredentialType.EXECUTION, 1000, 256, 1256, "active_online")
    assert not is_consolidable(CredentialType.COMPOUNDING, 1000, 256, 1000, "active_online")
    assert not is_consolidable(CredentialType.COMPOUNDING, None, 256, 10**9, "active_online")


@mark.parametrize("status,expected", [
    ("active_online", True),
    ("active_offline", True),
    ("deposited", True),
    ("pending", False),
    ("exiting_online", False),
    ("exited", False),
    ("slashed", False),
    ("slashing_offline", False),
])
def test_is_consolidable_status(status: str, expected: bool) -> None:
    assert is_consolidable(CredentialType.COMPOUNDING, 0, 256, 1000, status) == expected


class EvaluateTestCase(unittest.TestCase):
    """Test case for ConsolidationEligibility.evaluate()."""

    def evaluate(self, validators, target=PUBKEY_T, sources=(PUBKEY_S1,), sender=SENDER, params=None):
        beaconchain = FakeBeaconchain(validators)
        eligibility = ConsolidationEligibility(beaconchain, params or FakeChainParameters())
        return eligibility.evaluate(target, list(sources), sender, "mainnet"), beaconchain

    def test_valid(self) -> None:
        outcome, _ = self.evaluate([
            validator(1, PUBKEY_T, prefix="02"),
            validator(2, PUBKEY_S1, prefix="01"),
        ])

        self.assertTrue(outcome.valid)
        self.assertIsNone(outcome.error)
        self.assertEqual({v.index for v in outcome.validators}, {1, 2})

    def test_sender_is_case_insensitive(self) -> None:
        outcome, _ = self.evaluate(
            [validator(1, PUBKEY_T), validator(2, PUBKEY_S1)],
            sender=SENDER.upper().replace("0X", "0x"),
        )
        self.assertTrue(outcome.valid)

    def test_duplicates_are_fetched_once(self) -> None:
        outcome, beaconchain = self.evaluate(
            [validator(1, PUBKEY_T), validator(2, PUBKEY_S1)],
            sources=[PUBKEY_S1, PUBKEY_S1, PUBKEY_T],
        )

        self.assertTrue(outcome.valid)
        self.assertEqual(beaconchain.requested, [[PUBKEY_T, PUBKEY_S1]])

    def test_self_consolidation(self) -> None:
        outcome, beaconchain = self.evaluate([validator(1, PUBKEY_T)], sources=[PUBKEY_T])
        self.assertTrue(outcome.valid)
        self.assertEqual(beaconchain.requested, [[PUBKEY_T]])

    def test_missing_validators(self) -> None:
        outcome, _ = self.evaluate(
            [validator(1, PUBKEY_T)],
            sources=[PUBKEY_S1, PUBKEY_S2],
        )

        self.assertFalse(outcome.valid)
        self.assertEqual(outcome.error, f"Some validators do not exist: {PUBKEY_S1}, {PUBKEY_S2}")
        self.assertEqual(outcome.invalid_validators, [])

    def test_not_consolidable_bls(self) -> None:
        outcome, _ = self.evaluate([
            validator(1, PUBKEY_T, prefix="02"),
            validator(2, PUBKEY_S1, prefix="00"),
        ])

        self.assertFalse(outcome.valid)
        self.assertEqual(outcome.error, "Some validators failed validation")
        self.assertEqual(len(outcome.invalid_validators), 1)

        invalid = outcome.invalid_validators[0]
        self.assertEqual(invalid.pubkey, PUBKEY_S1)
        self.assertEqual(invalid.reason, "Validator is not consolidable")
        self.assertEqual(invalid.details["credtype"], "00")
        self.assertEqual(invalid.details["currentEpoch"], 400_000)
        self.assertEqual(invalid.details["shardCommitteePeriod"], 256)
        self.assertEqual(invalid.details["status"], "active_online")

    def test_not_consolidable_too_young(self) -> None:
        outcome, _ = self.evaluate(
            [validator(1, PUBKEY_T, activationepoch=1000), validator(2, PUBKEY_S1, activationepoch=900)],
            params=FakeChainParameters(epoch=1200, period=256),
        )

        self.assertFalse(outcome.valid)
        self.assertEqual(
            {(i.pubkey, i.reason) for i in outcome.invalid_validators},
            {(PUBKEY_T, "Validator is not consolidable"), (PUBKEY_S1, "Validator is not consolidable")},
        )

    def test_not_activated(self) -> None:
        outcome, _ = self.evaluate([validator(1, PUBKEY_T), validator(2, PUBKEY_S1, activationepoch=None)])

        self.assertFalse(outcome.valid)
        self.assertEqual(outcome.invalid_validators[0].pubkey, PUBKEY_S1)
        self.assertIsNone(outcome.invalid_validators[0].details["activationEpoch"])

    def test_exited(self) -> None:
        outcome, _ = self.evaluate([validator(1, PUBKEY_T, status="exited"), validator(2, PUBKEY_S1)])

        self.assertFalse(outcome.valid)
        self.assertEqual(outcome.invalid_validators[0].pubkey, PUBKEY_T)

    def test_withdrawal_address_mismatch(self) -> None:
        outcome, _ = self.evaluate([
            validator(1, PUBKEY_T),
            validator(2, PUBKEY_S1, address=OTHER_ADDRESS),
        ])

        self.assertFalse(outcome.valid)
        self.assertEqual(len(outcome.invalid_validators), 1)

        invalid = outcome.invalid_validators[0]
        self.assertEqual(invalid.pubkey, PUBKEY_S1)
        self.assertEqual(invalid.reason, "Withdrawal address does not match sender address")
        self.assertEqual(invalid.details, dict(withdrawalAddress=OTHER_ADDRESS, senderAddress=SENDER))

    def test_all_failures_are_reported(self) -> None:
        outcome, _ = self.evaluate(
            [
                validator(1, PUBKEY_T, address=OTHER_ADDRESS),
                validator(2, PUBKEY_S1, prefix="00"),
                validator(3, PUBKEY_S2, status="slashed"),
                validator(4, PUBKEY_S3),
            ],
            sources=[PUBKEY_S1, PUBKEY_S2, PUBKEY_S3],
        )

        self.assertFalse(outcome.valid)
        self.assertEqual(
            {i.pubkey for i in outcome.invalid_validators},
            {PUBKEY_T, PUBKEY_S1, PUBKEY_S2},
        )

    def test_reasons_do_not_depend_on_source_order(self) -> None:
        validators = [
            validator(1, PUBKEY_T),
            validator(2, PUBKEY_S1, prefix="00"),
            validator(3, PUBKEY_S2, address=OTHER_ADDRESS),
            validator(4, PUBKEY_S3, status="pending"),
        ]

        forward, _ = self.evaluate(validators, sources=[PUBKEY_S1, PUBKEY_S2, PUBKEY_S3])
        backward, _ = self.evaluate(validators, sources=[PUBKEY_S3, PUBKEY_S2, PUBKEY_S1])

        self.assertEqual(
            {(i.pubkey, i.reason) for i in forward.invalid_validators},
            {(i.pubkey, i.reason) for i in backward.invalid_validators},
        )

    def test_upstream_failure(self) -> None:

        class FailingChainParameters(FakeChainParameters):
            def current_epoch(self, network):
                raise UpstreamError("GET /epoch/latest failed: 500")

        outcome, _ = self.evaluate(
            [validator(1, PUBKEY_T), validator(2, PUBKEY_S1)],
            params=FailingChainParameters(),
        )

        self.assertFalse(outcome.valid)
        self.assertEqual(outcome.error, "Failed to validate consolidation requirements: GET /epoch/latest failed: 500")


if __name__ == "__main__":
    unittest.main()
