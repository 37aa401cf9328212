import threading
import unittest

from frostdkg import (
    Commitment,
    Committee,
    ConfigurationError,
    G,
    Participant,
    ParticipantId,
    PeerCommitment,
    ProofOfKnowledge,
    Scalar,
    SecretPolynomial,
    ThresholdParams,
    VerificationFailure,
)


def published(pid, params):
    p = Participant(pid, params)
    return p, p.publish()


class ConfigurationTests(unittest.TestCase):
    def test_threshold_bounds(self):
        for n, t in ((3, 0), (3, 4), (0, 0), (2, -1)):
            with self.assertRaises(ConfigurationError):
                Committee(n, t)
        Committee(1, 1)
        Committee(5, 5)

    def test_zero_participant_id(self):
        with self.assertRaises(ConfigurationError):
            ParticipantId(0)
        # also a ValueError for callers that do not know the hierarchy
        with self.assertRaises(ValueError):
            ParticipantId(0)

    def test_participant_id_range(self):
        with self.assertRaises(ConfigurationError):
            ParticipantId(2**64)
        with self.assertRaises(ConfigurationError):
            ParticipantId(-1)
        self.assertEqual(ParticipantId(2**64 - 1).encode(), b"\xff" * 8)
        self.assertEqual(str(ParticipantId(5)), "5")

    def test_params_ids(self):
        self.assertEqual(ThresholdParams.create(3, 2).participant_ids, (1, 2, 3))
        with self.assertRaises(ConfigurationError):
            ThresholdParams.create(3, 2, [1, 1, 2])
        with self.assertRaises(ConfigurationError):
            ThresholdParams.create(3, 2, [1, 2])
        with self.assertRaises(ConfigurationError):
            ThresholdParams.create(2, 2, [0, 1])


class CommitteeTests(unittest.TestCase):
    def setUp(self):
        self.params = ThresholdParams.create(3, 2)
        self.committee = Committee(3, 2)
        self.peers = {pid: published(pid, self.params) for pid in (1, 2, 3)}

    def test_quorum_boundary(self):
        self.assertFalse(self.committee.is_ready())
        self.assertTrue(self.committee.admit(self.peers[1][1]))
        self.assertFalse(self.committee.is_ready())
        self.assertIsNone(self.committee.group_public_key())
        self.assertIsNone(self.committee.public_key_package())
        self.assertTrue(self.committee.admit(self.peers[2][1]))
        self.assertTrue(self.committee.is_ready())

    def test_group_public_key_is_sum_of_constant_terms(self):
        for _, msg in self.peers.values():
            self.committee.admit(msg)
        expected = self.peers[1][1].commitment[0]
        expected = expected + self.peers[2][1].commitment[0]
        expected = expected + self.peers[3][1].commitment[0]
        self.assertEqual(self.committee.group_public_key(), expected)

    def test_admission_order_is_irrelevant(self):
        other = Committee(3, 2)
        for pid in (1, 2, 3):
            self.committee.admit(self.peers[pid][1])
        for pid in (3, 1, 2):
            other.admit(self.peers[pid][1])
        self.assertEqual(self.committee.group_public_key(), other.group_public_key())

    def test_duplicate_id_rejected(self):
        self.assertTrue(self.committee.admit(self.peers[1][1]))
        _, impostor = published(1, self.params)
        self.assertFalse(self.committee.admit(impostor))
        record = self.committee.verified_peers()[ParticipantId(1)]
        self.assertEqual(record.commitment, self.peers[1][1].commitment)
        self.assertTrue(record.verified)

    def test_pok_bound_to_other_id_rejected(self):
        msg = self.peers[1][1]
        replay = PeerCommitment(
            participant_id=ParticipantId(2),
            commitment=msg.commitment,
            proof=msg.proof,
        )
        self.assertFalse(self.committee.admit(replay))
        self.assertIn(ParticipantId(2), self.committee.rejections)

    def test_pok_for_other_constant_term_rejected(self):
        msg1, msg2 = self.peers[1][1], self.peers[2][1]
        swapped = PeerCommitment(
            participant_id=msg1.participant_id,
            commitment=msg2.commitment,
            proof=msg1.proof,
        )
        self.assertFalse(self.committee.admit(swapped))

    def test_rogue_key_rejected(self):
        for pid in (1, 2):
            self.committee.admit(self.peers[pid][1])
        target = Scalar.random() * G
        honest_sum = self.committee.group_public_key()
        rogue_poly = SecretPolynomial.generate(2)
        points = list(rogue_poly.commit().points)
        points[0] = target - honest_sum
        rogue_commitment = Commitment(points=tuple(points))
        # best the attacker can do: a proof for a polynomial it knows
        proof = ProofOfKnowledge.prove(3, rogue_poly, rogue_commitment)
        self.assertFalse(self.committee.admit(
            PeerCommitment(ParticipantId(3), rogue_commitment, proof)
        ))
        self.assertNotEqual(self.committee.group_public_key(), target)

    def test_malformed_commitment_rejected(self):
        wrong = ThresholdParams.create(3, 3)
        _, msg = published(1, wrong)
        self.assertFalse(self.committee.admit(msg))
        self.assertIn("malformed", self.committee.rejections[ParticipantId(1)].reason)

    def test_rejection_is_permanent(self):
        _, msg = self.peers[2]
        bad = PeerCommitment(
            participant_id=msg.participant_id,
            commitment=msg.commitment,
            proof=ProofOfKnowledge(R=msg.proof.R, z=msg.proof.z + Scalar.one()),
        )
        self.assertFalse(self.committee.admit(bad))
        # the genuine message is not re-examined
        self.assertFalse(self.committee.admit(msg))
        self.assertNotIn(ParticipantId(2), self.committee.verified_peers())

    def test_rejection_callback(self):
        events = []
        committee = Committee(3, 2, on_reject=events.append)
        msg = self.peers[1][1]
        committee.admit(msg)
        committee.admit(msg)
        self.assertEqual(len(events), 1)
        self.assertIsInstance(events[0], VerificationFailure)
        self.assertEqual(events[0].participant_id, 1)

    def test_membership_enforced(self):
        committee = Committee(2, 2, participant_ids=[1, 2])
        self.assertFalse(committee.admit(self.peers[3][1]))
        self.assertIn("member", committee.rejections[ParticipantId(3)].reason)

    def test_committee_full(self):
        committee = Committee(2, 2)
        for pid in (1, 2):
            self.assertTrue(committee.admit(self.peers[pid][1]))
        self.assertFalse(committee.admit(self.peers[3][1]))

    def test_closed_committee_refuses_new_peers(self):
        for pid in (1, 2):
            self.committee.admit(self.peers[pid][1])
        Y = self.committee.group_public_key()
        frozen = self.committee.close()
        self.assertTrue(self.committee.closed)
        self.assertEqual(sorted(frozen), [1, 2])

        self.assertFalse(self.committee.admit(self.peers[3][1]))
        self.assertEqual(
            self.committee.rejections[ParticipantId(3)].reason, "admission closed",
        )
        self.assertEqual(self.committee.group_public_key(), Y)
        # closing twice returns the same set
        self.assertEqual(sorted(self.committee.close()), [1, 2])

    def test_snapshots_are_read_only(self):
        self.committee.admit(self.peers[1][1])
        snapshot = self.committee.verified_peers()
        with self.assertRaises(TypeError):
            snapshot[ParticipantId(9)] = None
        self.committee.admit(self.peers[2][1])
        self.assertEqual(len(snapshot), 1)

    def test_transport_encoding(self):
        msg = self.peers[1][1]
        decoded = PeerCommitment.from_bytes(msg.to_bytes())
        self.assertEqual(decoded, msg)
        self.assertTrue(self.committee.admit(decoded))

    def test_concurrent_duplicate_admission(self):
        msg = self.peers[1][1]
        n_threads = 8
        barrier = threading.Barrier(n_threads)
        results = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            ok = self.committee.admit(msg)
            with lock:
                results.append(ok)

        threads = [threading.Thread(target=worker) for _ in range(n_threads)]
        for th in threads:
            th.start()
        for th in threads:
            th.join()
        self.assertEqual(results.count(True), 1)
        self.assertEqual(len(self.committee.verified_peers()), 1)


if __name__ == "__main__":
    unittest.main()
