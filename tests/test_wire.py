#!/usr/bin/env python
"""
test_wire.py - Formatos binarios de signature y delta
=====================================================
"""

import json
import random
import struct
import unittest

from blocksync import (
    CompressionType,
    CorruptDeltaError,
    Delta,
    DeltaCopy,
    DeltaLiteral,
    Signature,
    SignatureBuilder,
    SignatureFormatError,
    compute_delta,
    compute_signature,
    decode_delta,
    decode_signature,
    encode_delta,
    encode_signature,
)
from blocksync.wire import DELTA_MAGIC, UNKNOWN_BLOCK_COUNT, _DELTA_HEADER


class TestSignatureWire(unittest.TestCase):
    """Tests del formato de signature"""

    def setUp(self):
        self.data = random.Random(8).randbytes(5000)
        self.signature = SignatureBuilder(block_size=512, checksum_type="sha1").build(self.data)

    def test_roundtrip(self):
        """Test: codificar y decodificar conserva la signature"""
        encoded = encode_signature(self.signature)
        self.assertTrue(encoded.startswith(b"BSSG"))
        self.assertEqual(decode_signature(encoded), self.signature)

    def test_record_layout(self):
        """Test: cabecera de 24 bytes y registros de 12 bytes + digest"""
        encoded = encode_signature(self.signature)
        self.assertEqual(len(encoded), 24 + self.signature.num_blocks * (12 + 20))
        block_size, = struct.unpack_from("<I", encoded, 8)
        self.assertEqual(block_size, 512)

    def test_empty_signature(self):
        """Test: signature sin bloques"""
        empty = SignatureBuilder(block_size=16).build(b"")
        self.assertEqual(decode_signature(encode_signature(empty)), empty)

    def test_bad_magic(self):
        """Test: magic incorrecto"""
        encoded = b"XXXX" + encode_signature(self.signature)[4:]
        with self.assertRaises(SignatureFormatError):
            decode_signature(encoded)

    def test_bad_version(self):
        """Test: versión no soportada"""
        encoded = bytearray(encode_signature(self.signature))
        encoded[4] = 99
        with self.assertRaises(SignatureFormatError):
            decode_signature(bytes(encoded))

    def test_truncated_and_trailing(self):
        """Test: datos truncados o sobrantes"""
        encoded = encode_signature(self.signature)
        for bad in (encoded[:10], encoded[:-1], encoded + b"\x00"):
            with self.assertRaises(SignatureFormatError):
                decode_signature(bad)

    def test_digest_size_must_match_checksum(self):
        """Test: digests de 8 bytes en una signature md5"""
        sig = SignatureBuilder(block_size=512, checksum_type="md5").build(self.data)
        encoded = encode_signature(sig)
        forged = bytearray(encoded[:24])
        forged[6] = 8
        pos = 24
        for _ in range(sig.num_blocks):
            forged += encoded[pos:pos + 12 + 8]
            pos += 12 + 16
        with self.assertRaises(SignatureFormatError):
            decode_signature(bytes(forged))

    def test_json_roundtrip(self):
        """Test: forma JSON de la signature"""
        text = json.dumps(self.signature.to_dict())
        self.assertEqual(Signature.from_dict(json.loads(text)), self.signature)


class TestDeltaWire(unittest.TestCase):
    """Tests del formato de delta"""

    def setUp(self):
        rng = random.Random(21)
        self.basis = rng.randbytes(8000)
        self.updated = self.basis[:3000] + b"inserted text" + self.basis[3000:7000] + rng.randbytes(300)
        self.delta = compute_delta(compute_signature(self.basis, block_size=256), self.updated)

    def test_roundtrip_all_compressions(self):
        """Test: round-trip con cada algoritmo de compresión"""
        for comp in CompressionType:
            encoded = encode_delta(self.delta, comp)
            self.assertTrue(encoded.startswith(DELTA_MAGIC))
            self.assertEqual(decode_delta(encoded), self.delta, comp.value)

    def test_header_fields(self):
        """Test: campos de la cabecera"""
        encoded = encode_delta(self.delta, "zstd")
        _magic, version, comp_id, checksum_id, digest_size, block_size, count, new_size = \
            _DELTA_HEADER.unpack_from(encoded, 0)
        self.assertEqual((version, comp_id, checksum_id, digest_size), (1, 3, 1, 16))
        self.assertEqual(block_size, 256)
        self.assertEqual(count, self.delta.basis_block_count)
        self.assertEqual(new_size, len(self.updated))

    def test_minimal_delta(self):
        """Test: delta sin digest ni número de bloques"""
        delta = Delta(4, (DeltaLiteral(b"abc"), DeltaCopy(7)))
        encoded = encode_delta(delta)
        _m, _v, _c, checksum_id, digest_size, _bs, count, _n = _DELTA_HEADER.unpack_from(encoded, 0)
        self.assertEqual((checksum_id, digest_size, count), (0, 0, UNKNOWN_BLOCK_COUNT))
        self.assertEqual(encoded[_DELTA_HEADER.size:], b"L\x03\x00\x00\x00abcC\x07\x00\x00\x00E")
        self.assertEqual(decode_delta(encoded), delta)

    def _raw(self, body):
        header = _DELTA_HEADER.pack(DELTA_MAGIC, 1, 0, 0, 0, 4, UNKNOWN_BLOCK_COUNT, 0)
        return header + body

    def test_unknown_tag(self):
        """Test: etiqueta de registro desconocida"""
        with self.assertRaises(CorruptDeltaError):
            decode_delta(self._raw(b"Z\x00\x00\x00\x00E"))

    def test_truncated_records(self):
        """Test: registros truncados y falta de marca final"""
        for body in (b"", b"C\x01\x00", b"L\x05\x00\x00\x00abc", b"C\x01\x00\x00\x00"):
            with self.assertRaises(CorruptDeltaError):
                decode_delta(self._raw(body))

    def test_trailing_bytes(self):
        """Test: bytes después de la marca final"""
        with self.assertRaises(CorruptDeltaError):
            decode_delta(self._raw(b"Ejunk"))

    def test_bad_header(self):
        """Test: magic, versión y compresión inválidos"""
        encoded = bytearray(encode_delta(self.delta))
        for offset, value in ((0, ord("X")), (4, 9), (5, 77)):
            bad = bytearray(encoded)
            bad[offset] = value
            with self.assertRaises(CorruptDeltaError):
                decode_delta(bytes(bad))
        with self.assertRaises(CorruptDeltaError):
            decode_delta(b"BSDL")

    def test_corrupt_compressed_body(self):
        """Test: cuerpo comprimido corrupto"""
        for comp in (CompressionType.ZLIB, CompressionType.LZ4, CompressionType.ZSTD):
            encoded = encode_delta(self.delta, comp)
            head = _DELTA_HEADER.size + 16
            with self.assertRaises(CorruptDeltaError):
                decode_delta(encoded[:head] + b"\x00garbage\xff" * 4)

    def test_digest_size_must_match_checksum(self):
        """Test: id de checksum incompatible con la longitud del digest"""
        encoded = bytearray(encode_delta(self.delta))
        self.assertEqual((encoded[6], encoded[7]), (1, 16))
        encoded[6] = 3
        with self.assertRaises(CorruptDeltaError):
            decode_delta(bytes(encoded))

    def test_trailing_bytes_after_compressed_body(self):
        """Test: basura tras el cuerpo comprimido"""
        for comp in (CompressionType.ZLIB, CompressionType.LZ4, CompressionType.ZSTD):
            encoded = encode_delta(self.delta, comp)
            with self.assertRaises(CorruptDeltaError):
                decode_delta(encoded + b"GARBAGE")

    def test_truncated_compressed_body(self):
        """Test: cuerpo comprimido cortado"""
        for comp in (CompressionType.ZLIB, CompressionType.LZ4, CompressionType.ZSTD):
            encoded = encode_delta(self.delta, comp)
            with self.assertRaises(CorruptDeltaError):
                decode_delta(encoded[:-5])

    def test_compression_shrinks_literals(self):
        """Test: literales repetitivos se comprimen"""
        delta = Delta(4, (DeltaLiteral(b"a" * 100_000),))
        self.assertLess(len(encode_delta(delta, "zlib")), len(encode_delta(delta, "none")) // 10)

    def test_json_roundtrip(self):
        """Test: forma JSON del delta"""
        text = json.dumps(self.delta.to_dict())
        self.assertEqual(Delta.from_dict(json.loads(text)), self.delta)

    def test_json_unknown_instruction(self):
        """Test: instrucción JSON desconocida"""
        raw = {'block_size': 4, 'instructions': [{'type': 'move', 'data': ''}]}
        with self.assertRaises(CorruptDeltaError):
            Delta.from_dict(raw)


if __name__ == '__main__':
    unittest.main()
