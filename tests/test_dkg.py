import unittest
from unittest import mock

from frostdkg import (
    Committee,
    DKGState,
    G,
    KeyPackage,
    Participant,
    ParticipantId,
    ProtocolStateError,
    PublicKeyPackage,
    QuorumError,
    Scalar,
    Share,
    ThresholdParams,
    VerificationFailure,
    interpolate_at_zero,
    run_dkg,
)


class DKGRun:
    """Drives a committee of honest participants one round at a time."""

    def __init__(self, n=3, t=2):
        self.params = ThresholdParams.create(n, t)
        self.committee = Committee(n, t)
        self.participants = {
            pid: Participant(pid, self.params) for pid in self.params.participant_ids
        }

    def publish(self):
        for p in self.participants.values():
            assert self.committee.admit(p.publish())

    def constant_terms(self):
        return {pid: p._poly.constant_term for pid, p in self.participants.items()}

    def exchange(self):
        return {
            pid: p.exchange_shares(self.committee)
            for pid, p in self.participants.items()
        }

    def deliver(self, outbox):
        for shares in outbox.values():
            for recipient, share in shares.items():
                self.participants[recipient].receive_share(share)

    def finalize(self):
        return {pid: p.finalize() for pid, p in self.participants.items()}


class DKGCorrectnessTests(unittest.TestCase):
    def setUp(self):
        self.run = DKGRun(n=3, t=2)
        self.run.publish()
        self.secret = sum(self.run.constant_terms().values(), Scalar.zero())
        self.run.deliver(self.run.exchange())
        self.keys = self.run.finalize()

    def test_group_key_matches_secret(self):
        for kp in self.keys.values():
            self.assertEqual(kp.group_public_key, self.secret * G)
        self.assertEqual(self.run.committee.group_public_key(), self.secret * G)

    def test_any_two_shares_reconstruct(self):
        shares = {pid: kp.secret_share for pid, kp in self.keys.items()}
        for pair in ((1, 2), (1, 3), (2, 3)):
            recovered = interpolate_at_zero({pid: shares[pid] for pid in pair})
            self.assertEqual(recovered, self.secret)

    def test_verification_shares(self):
        for pid, kp in self.keys.items():
            self.assertTrue(kp.is_consistent())
            self.assertEqual(kp.verification_share, kp.secret_share * G)
        publics = {kp.public.to_bytes() for kp in self.keys.values()}
        self.assertEqual(len(publics), 1)
        self.assertEqual(
            self.run.committee.public_key_package().to_bytes(), publics.pop(),
        )

    def test_states(self):
        for p in self.run.participants.values():
            self.assertIs(p.state, DKGState.FINALIZED)
            self.assertIsNone(p._poly)

    def test_finalize_exactly_once(self):
        with self.assertRaises(ProtocolStateError):
            self.run.participants[ParticipantId(1)].finalize()

    def test_key_package_persistence(self):
        kp = self.keys[ParticipantId(2)]
        restored = KeyPackage.from_bytes(kp.to_bytes())
        self.assertEqual(restored, kp)
        public = PublicKeyPackage.from_bytes(kp.public.to_bytes())
        self.assertEqual(public.group_public_key, kp.group_public_key)
        self.assertEqual(public.threshold, 2)


class DKGStateMachineTests(unittest.TestCase):
    def setUp(self):
        self.run = DKGRun(n=3, t=2)

    def test_publish_once(self):
        p = self.run.participants[ParticipantId(1)]
        p.publish()
        with self.assertRaises(ProtocolStateError):
            p.publish()

    def test_share_exchange_gated_on_quorum(self):
        p1 = self.run.participants[ParticipantId(1)]
        self.run.committee.admit(p1.publish())
        with self.assertRaises(ProtocolStateError):
            p1.exchange_shares(self.run.committee)
        self.assertIs(p1.state, DKGState.COMMITMENT_PUBLISHED)

    def test_exchange_requires_own_admission(self):
        p1, p2, p3 = (self.run.participants[ParticipantId(i)] for i in (1, 2, 3))
        self.run.committee.admit(p1.publish())
        self.run.committee.admit(p2.publish())
        p3.publish()
        with self.assertRaises(ProtocolStateError):
            p3.exchange_shares(self.run.committee)

    def test_finalize_waits_for_every_share(self):
        self.run.publish()
        outbox = self.run.exchange()
        p1 = self.run.participants[ParticipantId(1)]
        p1.receive_share(outbox[ParticipantId(1)][ParticipantId(1)])
        p1.receive_share(outbox[ParticipantId(2)][ParticipantId(1)])
        self.assertEqual(p1.missing_shares, {ParticipantId(3)})
        with self.assertRaises(ProtocolStateError):
            p1.finalize()
        p1.receive_share(outbox[ParticipantId(3)][ParticipantId(1)])
        self.assertIsInstance(p1.finalize(), KeyPackage)

    def test_duplicate_share_rejected(self):
        self.run.publish()
        outbox = self.run.exchange()
        share = outbox[ParticipantId(2)][ParticipantId(1)]
        p1 = self.run.participants[ParticipantId(1)]
        p1.receive_share(share)
        with self.assertRaises(ProtocolStateError):
            p1.receive_share(share)

    def test_misaddressed_share_rejected(self):
        self.run.publish()
        outbox = self.run.exchange()
        with self.assertRaises(ProtocolStateError):
            self.run.participants[ParticipantId(1)].receive_share(
                outbox[ParticipantId(2)][ParticipantId(3)]
            )

    def test_inconsistent_share_aborts_run(self):
        self.run.publish()
        outbox = self.run.exchange()
        good = outbox[ParticipantId(2)][ParticipantId(1)]
        forged = Share(
            sender=good.sender, recipient=good.recipient,
            value=good.value + Scalar.one(),
        )
        p1 = self.run.participants[ParticipantId(1)]
        with self.assertRaises(VerificationFailure) as cm:
            p1.receive_share(forged)
        self.assertEqual(cm.exception.participant_id, 2)
        self.assertIs(p1.state, DKGState.ABORTED)
        self.assertIsNone(p1._poly)
        with self.assertRaises(ProtocolStateError):
            p1.receive_share(good)
        with self.assertRaises(ProtocolStateError):
            p1.finalize()

    def test_share_from_outside_verified_set(self):
        run = DKGRun(n=3, t=2)
        p1, p2, p3 = (run.participants[ParticipantId(i)] for i in (1, 2, 3))
        run.committee.admit(p1.publish())
        run.committee.admit(p2.publish())
        late = p3.publish()
        p1.exchange_shares(run.committee)
        # p1 closed the committee when it froze its peer set
        self.assertFalse(run.committee.admit(late))
        with self.assertRaises(ProtocolStateError):
            p3.exchange_shares(run.committee)
        stray = Share(
            sender=p3.id, recipient=p1.id, value=p3._poly.evaluate(p1.id),
        )
        with self.assertRaises(ProtocolStateError):
            p1.receive_share(stray)

    def test_late_peer_cannot_move_group_key(self):
        run = DKGRun(n=3, t=2)
        p1, p2, p3 = (run.participants[ParticipantId(i)] for i in (1, 2, 3))
        run.committee.admit(p1.publish())
        run.committee.admit(p2.publish())
        outbox = {p.id: p.exchange_shares(run.committee) for p in (p1, p2)}
        self.assertTrue(run.committee.closed)
        for shares in outbox.values():
            for recipient, share in shares.items():
                run.participants[recipient].receive_share(share)
        key = p1.finalize()
        p2.finalize()

        self.assertFalse(run.committee.admit(p3.publish()))
        self.assertEqual(
            run.committee.rejections[ParticipantId(3)].reason, "admission closed",
        )
        self.assertEqual(sorted(run.committee.verified_peers()), [1, 2])
        self.assertEqual(run.committee.group_public_key(), key.group_public_key)
        self.assertEqual(
            run.committee.public_key_package().to_bytes(), key.public.to_bytes(),
        )

    def test_exchange_without_polynomial(self):
        p1, p2 = (self.run.participants[ParticipantId(i)] for i in (1, 2))
        self.run.committee.admit(p1.publish())
        self.run.committee.admit(p2.publish())
        p1._poly.destroy()
        p1._poly = None
        with self.assertRaises(ProtocolStateError):
            p1.exchange_shares(self.run.committee)
        self.assertIs(p1.state, DKGState.COMMITMENT_PUBLISHED)
        self.assertFalse(self.run.committee.closed)

    def test_share_encoding(self):
        self.run.publish()
        share = self.run.exchange()[ParticipantId(1)][ParticipantId(2)]
        self.assertEqual(Share.from_bytes(share.to_bytes()), share)
        self.assertNotIn("value", repr(share))


class RunDKGTests(unittest.TestCase):
    def test_three_of_five(self):
        result = run_dkg(ThresholdParams.create(5, 3))
        self.assertEqual(len(result.key_packages), 5)
        shares = {pid: kp.secret_share for pid, kp in result.key_packages.items()}
        for subset in ((1, 2, 3), (2, 4, 5), (1, 3, 5)):
            secret = interpolate_at_zero({pid: shares[pid] for pid in subset})
            self.assertEqual(secret * G, result.group_public_key)

    def test_custom_ids(self):
        ids = [10, 2**40, 2**64 - 1]
        result = run_dkg(ThresholdParams.create(3, 2, ids))
        self.assertEqual(sorted(result.key_packages), sorted(ids))

    def test_one_of_one(self):
        result = run_dkg(ThresholdParams.create(1, 1))
        kp = result.key_packages[ParticipantId(1)]
        self.assertEqual(kp.secret_share * G, result.group_public_key)

    def test_below_quorum_aborts_everyone(self):
        abort = Participant.abort
        with mock.patch.object(Committee, "admit", return_value=False), \
                mock.patch.object(
                    Participant, "abort", autospec=True, side_effect=abort,
                ) as aborted:
            with self.assertRaises(QuorumError) as cm:
                run_dkg(ThresholdParams.create(3, 2))
        self.assertEqual(cm.exception.available, 0)
        self.assertEqual(aborted.call_count, 3)
        for call in aborted.call_args_list:
            participant = call.args[0]
            self.assertIs(participant.state, DKGState.ABORTED)
            self.assertIsNone(participant._poly)


if __name__ == "__main__":
    unittest.main()
