import unittest

from smarttopup.enums import Network
from smarttopup.services.networks import format_phone_number, resolve_network


class ResolveNetworkTests(unittest.TestCase):
    def test_known_prefixes_map_to_their_carrier(self) -> None:
        cases = {
            "08031234567": Network.MTN,
            "09161234567": Network.MTN,
            "08021234567": Network.AIRTEL,
            "09121234567": Network.AIRTEL,
            "08051234567": Network.GLO,
            "08111234567": Network.GLO,
            "08091234567": Network.NINE_MOBILE,
            "09091234567": Network.NINE_MOBILE,
        }
        for number, network in cases.items():
            with self.subTest(number=number):
                self.assertIs(resolve_network(number), network)

    def test_unknown_prefix_is_none(self) -> None:
        self.assertIsNone(resolve_network("07001234567"))

    def test_ten_digits_is_none(self) -> None:
        self.assertIsNone(resolve_network("0803123456"))

    def test_non_numeric_is_none(self) -> None:
        self.assertIsNone(resolve_network("0803123456a"))
        self.assertIsNone(resolve_network(""))

    def test_formatting_groups_digits(self) -> None:
        self.assertEqual(format_phone_number("08031234567"), "0803 123 4567")
        self.assertEqual(format_phone_number("12345"), "12345")


if __name__ == "__main__":
    unittest.main()
