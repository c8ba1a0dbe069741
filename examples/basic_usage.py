#!/usr/bin/env python3
"""Basic usage example for nahan.

Alice encrypts a message to Bob, hides it in a Persian sentence with the
hybrid algorithm, and Bob's clipboard detector picks it up.
"""

from nahan import (
    Analyzer,
    ClipboardDetector,
    Contact,
    Identity,
    MemoryClipboard,
    build_encrypted,
    default_registry,
)

COVER = " ".join(["امروز هوا بسیار خوب است و ما به پارک رفتیم"] * 42)


def main() -> None:
    print("Generating identities...")
    alice = Identity.generate("Alice", "alice passphrase")
    bob = Identity.generate("Bob", "bob passphrase")

    # --- Build and hide an envelope ---
    envelope = build_encrypted(b"Hello there", bob.public, alice, "alice passphrase")
    hybrid = default_registry().get_provider("NH06")
    print(f"\nEnvelope: {len(envelope)} bytes, cover holds {hybrid.max_payload_size(COVER)}")

    stego = hybrid.encode(envelope, COVER)
    print(f"\nStego text:\n{stego[:120]}...")

    # --- Receive through the clipboard ---
    analyzer = Analyzer(
        bob,
        "bob passphrase",
        contacts=[Contact.from_public_key("Alice", alice.public_key)],
    )
    detector = ClipboardDetector(MemoryClipboard(stego), analyzer)
    result = detector.enable()

    print("\n--- Detector result ---")
    print(f"Type:      {result.type.value}")
    print(f"From:      {result.sender_name}")
    print(f"Algorithm: {result.algorithm.value}")
    print(f"Message:   {result.plaintext.decode()}")


if __name__ == "__main__":
    main()
