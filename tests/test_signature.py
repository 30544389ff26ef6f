#!/usr/bin/env python
"""
test_signature.py - Generación de signatures e índice de bloques
================================================================
"""

import hashlib
import io
import os
import random
import shutil
import tempfile
import unittest

from blocksync import (
    BlockIndex,
    Config,
    FileIOError,
    InvalidConfigError,
    RollingChecksum,
    Signature,
    SignatureBuilder,
    SignatureEntry,
    SignatureFormatError,
    validate_signature,
)


class TestSignatureBuilder(unittest.TestCase):
    """Tests de SignatureBuilder"""

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)
        Config.reset_defaults()

    def test_empty_basis(self):
        """Test: un archivo vacío produce cero entradas"""
        sig = SignatureBuilder(block_size=4).build(b"")
        self.assertEqual(sig.num_blocks, 0)
        self.assertEqual(sig.file_size, 0)
        self.assertEqual(sig.entries, ())

    def test_blocks_and_short_tail(self):
        """Test: bloques consecutivos y un último bloque más corto"""
        data = b"0123456789"
        sig = SignatureBuilder(block_size=4).build(data)
        self.assertEqual([e.block_index for e in sig.entries], [0, 1, 2])
        self.assertEqual([e.block_length for e in sig.entries], [4, 4, 2])
        self.assertEqual(sig.file_size, 10)
        self.assertEqual(sig.remainder, 2)
        for e in sig.entries:
            chunk = data[e.offset(4):e.offset(4) + e.block_length]
            self.assertEqual(e.weak_hash, RollingChecksum.checksum(chunk))
            self.assertEqual(e.strong_hash, hashlib.md5(chunk).digest())

    def test_exact_multiple(self):
        """Test: tamaño múltiplo exacto del bloque no genera bloque vacío"""
        sig = SignatureBuilder(block_size=4).build(b"ABCDEFGH")
        self.assertEqual(sig.num_blocks, 2)
        self.assertEqual(sig.remainder, 0)

    def test_invalid_block_size(self):
        """Test: block_size cero, negativo o excesivo"""
        for bad in (0, -1, Config.MAX_BLOCK_SIZE + 1):
            with self.assertRaises(InvalidConfigError):
                SignatureBuilder(block_size=bad)

    def test_default_block_size_from_config(self):
        """Test: sin block_size se usa Config.DEFAULT_BLOCK_SIZE"""
        Config.DEFAULT_BLOCK_SIZE = 100
        sig = SignatureBuilder().build(b"x" * 250)
        self.assertEqual(sig.block_size, 100)
        self.assertEqual(sig.num_blocks, 3)

    def test_parallel_matches_sequential(self):
        """Test: hashing con varios hilos da la misma signature"""
        data = random.Random(99).randbytes(300_000)
        seq = SignatureBuilder(block_size=512, workers=1).build(data)
        par = SignatureBuilder(block_size=512, workers=4).build(data)
        self.assertEqual(seq, par)

    def test_checksum_types(self):
        """Test: el algoritmo fuerte queda registrado en la signature"""
        sig = SignatureBuilder(block_size=8, checksum_type="xxh3").build(b"a" * 20)
        self.assertEqual(sig.checksum_type, "xxh3")
        self.assertEqual(sig.digest_size, 8)

    def test_file_and_stream_sources(self):
        """Test: ruta, objeto de archivo y bytes dan la misma signature"""
        data = random.Random(5).randbytes(10_000)
        path = os.path.join(self.test_dir, "basis.bin")
        with open(path, "wb") as f:
            f.write(data)

        builder = SignatureBuilder(block_size=700)
        from_bytes = builder.build(data)
        from_path = builder.build(path)
        with open(path, "rb") as f:
            from_stream = builder.build(f)
        from_bytesio = builder.build(io.BytesIO(data))

        self.assertEqual(from_bytes, from_path)
        self.assertEqual(from_bytes, from_stream)
        self.assertEqual(from_bytes, from_bytesio)

    def test_missing_file(self):
        """Test: archivo inexistente produce FileIOError"""
        with self.assertRaises(FileIOError):
            SignatureBuilder(block_size=4).build(os.path.join(self.test_dir, "missing"))


class TestValidateSignature(unittest.TestCase):
    """Tests de validate_signature"""

    def _entry(self, index, length, digest=b"\x00" * 16):
        return SignatureEntry(index, length, 0, digest)

    def test_valid(self):
        """Test: una signature construida siempre es válida"""
        validate_signature(SignatureBuilder(block_size=3).build(b"abcdefgh"))

    def test_gap_in_indices(self):
        """Test: índices no contiguos"""
        sig = Signature(4, (self._entry(0, 4), self._entry(2, 4)), file_size=8)
        with self.assertRaises(SignatureFormatError):
            validate_signature(sig)

    def test_short_block_in_middle(self):
        """Test: solo el último bloque puede ser corto"""
        sig = Signature(4, (self._entry(0, 2), self._entry(1, 4)), file_size=6)
        with self.assertRaises(SignatureFormatError):
            validate_signature(sig)

    def test_mixed_digest_sizes(self):
        """Test: todos los digests deben tener el mismo tamaño"""
        sig = Signature(4, (self._entry(0, 4), self._entry(1, 4, b"\x00" * 8)), file_size=8)
        with self.assertRaises(SignatureFormatError):
            validate_signature(sig)

    def test_digest_length_for_checksum(self):
        """Test: la longitud del digest debe corresponder al algoritmo"""
        sig = Signature(4, (self._entry(0, 4, b"\x00" * 8),), file_size=4)
        with self.assertRaises(SignatureFormatError):
            validate_signature(sig)
        validate_signature(Signature(4, (self._entry(0, 4, b"\x00" * 8),),
                                     checksum_type="xxh64", file_size=4))

    def test_unknown_checksum_name(self):
        """Test: algoritmo desconocido"""
        sig = Signature(4, (self._entry(0, 4),), checksum_type="crc32", file_size=4)
        with self.assertRaises(SignatureFormatError):
            validate_signature(sig)

    def test_file_size_mismatch(self):
        """Test: file_size debe coincidir con la suma de bloques"""
        sig = Signature(4, (self._entry(0, 4),), file_size=9)
        with self.assertRaises(SignatureFormatError):
            validate_signature(sig)


class TestBlockIndex(unittest.TestCase):
    """Tests de BlockIndex"""

    def test_duplicate_blocks_kept_in_order(self):
        """Test: bloques idénticos quedan todos como candidatos, en orden"""
        sig = SignatureBuilder(block_size=4).build(b"AAAA" * 3)
        index = BlockIndex(sig)
        weak = RollingChecksum.checksum(b"AAAA")
        self.assertIn(weak, index)
        self.assertEqual([e.block_index for e in index.lookup(weak)], [0, 1, 2])
        self.assertEqual(index.bucket_count, 1)
        self.assertEqual(len(index), 3)

    def test_weak_collision_bucket(self):
        """Test: bloques distintos con el mismo checksum débil comparten bucket"""
        index = BlockIndex(SignatureBuilder(block_size=4).build(b"ABCDACAE"))
        weak = RollingChecksum.checksum(b"ABCD")
        entries = index.lookup(weak)
        self.assertEqual([e.block_index for e in entries], [0, 1])
        self.assertNotEqual(entries[0].strong_hash, entries[1].strong_hash)

    def test_candidates_filter_length(self):
        """Test: candidates() solo devuelve bloques de la longitud pedida"""
        sig = SignatureBuilder(block_size=2).build(b"\x00\x00\x00")
        index = BlockIndex(sig)
        # b"\x00\x00" y b"\x00" tienen ambos checksum 0
        self.assertEqual(len(index.lookup(0)), 2)
        self.assertEqual([e.block_index for e in index.candidates(0, 2)], [0])
        self.assertEqual([e.block_index for e in index.candidates(0, 1)], [1])
        self.assertEqual(index.candidates(0, 3), [])

    def test_miss(self):
        """Test: checksum ausente"""
        index = BlockIndex(SignatureBuilder(block_size=4).build(b"ABCD"))
        self.assertNotIn(12345, index)
        self.assertEqual(index.lookup(12345), ())
        self.assertEqual(index.candidates(12345, 4), [])

    def test_empty_signature(self):
        """Test: índice de una signature vacía"""
        index = BlockIndex(SignatureBuilder(block_size=4).build(b""))
        self.assertEqual(len(index), 0)
        self.assertEqual(index.block_size, 4)


if __name__ == '__main__':
    unittest.main()
