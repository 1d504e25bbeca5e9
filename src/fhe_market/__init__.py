"""FHE compute market client: encrypted task submission and verified decryption."""
