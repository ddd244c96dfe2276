import dotenv
dotenv.load_dotenv()

import json

from mailing_labels.address_parser import parse_address
from mailing_labels.contact_name import extract_contact
from mailing_labels.utils import EnhancedJSONEncoder


if __name__ == "__main__":
    samples = [
        ("Bright Smiles: Dr. Jane Alvarez", "123 Main St, Suite 200, Irvine, CA 92618"),
        ("John Carter, DDS", "456 Oak Ave, Austin, TX 78701-1234"),
        ("Jane Smith", "789 Pine Rd"),
        ("Sunrise Family Dental", "100 First St, Suite 5, Denver, CO 80202, United States"),
        ("Dr. Maria Nguyen", "55 Harbor Way #12, Miami FL 33101"),
    ]

    for name, raw in samples:
        print(f"Office: {name}")
        print(f"Contact: {extract_contact(name)}")
        print(f"Raw: {raw}")
        print(json.dumps(parse_address(raw), cls=EnhancedJSONEncoder, ensure_ascii=False, indent=2))
        print("-" * 40)
