import unittest

from shared.json_utils import camel_to_snake, convert_keys, snake_to_camel
from shared.types import CleanupRecord, Organization, UserProfile, to_document


class KeyConversionTests(unittest.TestCase):
    def test_single_keys(self):
        self.assertEqual(snake_to_camel("organization_id"), "organizationId")
        self.assertEqual(snake_to_camel("points"), "points")
        self.assertEqual(camel_to_snake("totalPoints"), "total_points")

    def test_nested(self):
        self.assertEqual(
            convert_keys({"org_id": 1, "items": [{"photo_url": None}]}, "snake_to_camel"),
            {"orgId": 1, "items": [{"photoUrl": None}]},
        )


class DocumentMappingTests(unittest.TestCase):
    def test_profile_round_trip(self):
        profile = UserProfile(
            uid="u1", name="Ana", email="ana@example.com", role="org", organization_id="org_u1"
        )
        document = to_document(profile)
        self.assertEqual(document["organizationId"], "org_u1")
        restored = UserProfile.from_document(document)
        self.assertEqual(restored, profile)
        self.assertTrue(restored.is_org)

    def test_default_profile_document(self):
        profile = UserProfile.from_document(
            {"name": "ana", "email": "ana@example.com", "points": 0, "role": "member"}
        )
        self.assertIsNone(profile.uid)
        self.assertIsNone(profile.organization_id)
        self.assertFalse(profile.is_org)

    def test_organization_and_cleanup(self):
        organization = Organization.from_document(
            {"id": "org_u1", "name": "O", "members": ["u1"], "totalPoints": 7}
        )
        self.assertEqual(organization.total_points, 7)
        record = to_document(
            CleanupRecord(user_id="u1", description="d", location="l", points_earned=3)
        )
        self.assertEqual(
            sorted(record),
            ["description", "location", "organizationId", "photoUrl", "pointsEarned",
             "timestamp", "userId"],
        )


if __name__ == "__main__":
    unittest.main()
