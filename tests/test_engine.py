#!/usr/bin/env python
"""
test_engine.py - Tests end-to-end con archivos
==============================================

Flujo completo signature -> delta -> reconstrucción sobre disco,
informes de eficiencia y casos de sincronización por directorio.
"""

import json
import os
import random
import shutil
import tempfile
import unittest

from blocksync import (
    CorruptDeltaError,
    EfficiencyReport,
    FileIOError,
    SignatureFormatError,
    SyncCase,
    SyncEngine,
    gather_cases,
    load_delta,
    load_signature,
    measure_efficiency,
    run_case,
)


class TestSyncEngineFiles(unittest.TestCase):
    """Tests de SyncEngine con archivos"""

    def setUp(self):
        self.test_dir = tempfile.mkdtemp()
        rng = random.Random(1)
        self.basis = rng.randbytes(50_000)
        self.updated = self.basis[:20_000] + b"NEW CONTENT" + self.basis[20_500:]
        self.basis_path = self._write("basis.bin", self.basis)
        self.updated_path = self._write("updated.bin", self.updated)

    def tearDown(self):
        shutil.rmtree(self.test_dir, ignore_errors=True)

    def _write(self, name, data):
        path = os.path.join(self.test_dir, name)
        with open(path, "wb") as f:
            f.write(data)
        return path

    def _path(self, name):
        return os.path.join(self.test_dir, name)

    def _read(self, path):
        with open(path, "rb") as f:
            return f.read()

    def test_binary_pipeline(self):
        """Test: signature, delta y patch en formato binario"""
        engine = SyncEngine(block_size=1024, compression="zstd")
        sig = engine.signature_file(self.basis_path, self._path("sig"))
        delta = engine.delta_file(self._path("sig"), self.updated_path, self._path("delta"))
        written = engine.patch_file(self.basis_path, self._path("delta"), self._path("out"))

        self.assertEqual(load_signature(self._path("sig")), sig)
        self.assertEqual(load_delta(self._path("delta")), delta)
        self.assertEqual(written, len(self.updated))
        self.assertEqual(self._read(self._path("out")), self.updated)
        self.assertGreater(delta.num_copies, 40)
        self.assertLess(os.path.getsize(self._path("delta")), len(self.updated) // 10)

    def test_json_pipeline(self):
        """Test: signature y delta en JSON"""
        engine = SyncEngine(block_size=2048, checksum_type="xxh128")
        engine.signature_file(self.basis_path, self._path("sig.json"), as_json=True)
        engine.delta_file(self._path("sig.json"), self.updated_path, self._path("delta.json"), as_json=True)
        engine.patch_file(self.basis_path, self._path("delta.json"), self._path("out"))
        self.assertEqual(self._read(self._path("out")), self.updated)

    def test_patch_failure_leaves_no_output(self):
        """Test: un patch fallido no deja archivos parciales"""
        engine = SyncEngine(block_size=1024)
        engine.signature_file(self.basis_path, self._path("sig"))
        engine.delta_file(self._path("sig"), self.updated_path, self._path("delta"))

        # Basis distinto (otro número de bloques)
        other_basis = self._write("other.bin", self.basis[:10_000])
        with self.assertRaises(CorruptDeltaError):
            engine.patch_file(other_basis, self._path("delta"), self._path("out"))
        self.assertFalse(os.path.exists(self._path("out")))
        self.assertEqual([n for n in os.listdir(self.test_dir) if n.startswith(".blocksync-")], [])

    def test_load_errors(self):
        """Test: archivos que no son signature ni delta"""
        junk = self._write("junk", b"\x00\x01 not json")
        with self.assertRaises(SignatureFormatError):
            load_signature(junk)
        with self.assertRaises(CorruptDeltaError):
            load_delta(junk)
        with self.assertRaises(FileIOError):
            load_signature(self._path("missing"))
        bad_json = self._write("bad.json", b'{"block_size": 4}')
        with self.assertRaises(SignatureFormatError):
            load_signature(bad_json)

    def test_json_digest_length_checked(self):
        """Test: digests JSON con longitud que no corresponde al algoritmo"""
        engine = SyncEngine(block_size=4096)
        sig = engine.compute_signature(self.basis).to_dict()
        sig["checksum_type"] = "xxh64"
        path = self._write("sig.json", json.dumps(sig).encode())
        with self.assertRaises(SignatureFormatError):
            load_signature(path)

        delta = engine.compute_delta(engine.compute_signature(self.basis), self.updated).to_dict()
        delta["checksum_type"] = "sha256"
        path = self._write("delta.json", json.dumps(delta).encode())
        with self.assertRaises(CorruptDeltaError):
            load_delta(path)

    def test_json_block_count_as_string(self):
        """Test: basis_block_count escrito como texto en el JSON"""
        engine = SyncEngine(block_size=4096)
        delta = engine.compute_delta(engine.compute_signature(self.basis), self.updated)
        raw = delta.to_dict()
        raw["basis_block_count"] = str(raw["basis_block_count"])
        path = self._write("delta.json", json.dumps(raw).encode())
        loaded = load_delta(path)
        self.assertEqual(loaded, delta)
        engine.patch_file(self.basis_path, path, self._path("out"))
        self.assertEqual(self._read(self._path("out")), self.updated)

    def test_in_memory_apply(self):
        """Test: apply_delta devuelve bytes sin salida"""
        engine = SyncEngine(block_size=512)
        sig = engine.compute_signature(self.basis)
        delta = engine.compute_delta(sig, self.updated)
        self.assertEqual(engine.apply_delta(self.basis, delta), self.updated)


class TestEfficiency(unittest.TestCase):
    """Tests de informes de eficiencia"""

    def test_identical_files_cheap(self):
        """Test: archivos idénticos transfieren una fracción mínima"""
        data = random.Random(2).randbytes(100_000)
        report = measure_efficiency(data, data, block_size=2048)
        self.assertTrue(report.exact)
        self.assertEqual(report.literals, 0)
        self.assertLess(report.efficiency, 0.1)
        self.assertGreater(report.savings, 0.9)
        self.assertEqual(report.transferred, report.signature_size + report.delta_size)

    def test_unrelated_files_expensive(self):
        """Test: archivos sin relación transfieren más que el archivo entero"""
        rng = random.Random(3)
        report = measure_efficiency(rng.randbytes(20_000), rng.randbytes(20_000), block_size=512)
        self.assertTrue(report.exact)
        self.assertEqual(report.copies, 0)
        self.assertGreater(report.efficiency, 1.0)

    def test_empty_updated(self):
        """Test: eficiencia con archivo actualizado vacío"""
        report = EfficiencyReport(block_size=4, basis_size=0, updated_size=0,
                                  signature_size=0, delta_size=0)
        self.assertEqual(report.efficiency, 0.0)


class TestSyncCases(unittest.TestCase):
    """Tests de casos de sincronización por directorio"""

    def setUp(self):
        self.root = tempfile.mkdtemp()
        rng = random.Random(4)
        base = rng.randbytes(30_000)
        self._case("append", base, base + b"tail")
        self._case("nested/prepend", base, b"head" + base)
        self._case("empty_basis", b"", b"all new")
        os.makedirs(os.path.join(self.root, "not_a_case"))

    def tearDown(self):
        shutil.rmtree(self.root, ignore_errors=True)

    def _case(self, name, basis, updated):
        path = os.path.join(self.root, name)
        os.makedirs(path)
        with open(os.path.join(path, "basis_file"), "wb") as f:
            f.write(basis)
        with open(os.path.join(path, "updated_file"), "wb") as f:
            f.write(updated)

    def test_gather_cases(self):
        """Test: se encuentran todos los directorios de caso, ordenados"""
        names = [case.name for case in gather_cases(self.root)]
        self.assertEqual(sorted(names), ["append", "empty_basis", "prepend"])
        self.assertEqual(len(names), 3)

    def test_gather_missing_root(self):
        """Test: raíz inexistente"""
        with self.assertRaises(FileIOError):
            gather_cases(os.path.join(self.root, "nope"))

    def test_run_cases(self):
        """Test: cada caso se reconstruye exactamente y deja sus artefactos"""
        for case in gather_cases(self.root):
            result = run_case(case, block_size=1024)
            self.assertTrue(result.exact, case.name)
            for path in (case.signature_path, case.delta_path, case.recreated_path):
                self.assertTrue(os.path.isfile(path), path)
            with open(case.recreated_path, "rb") as a, open(case.updated_path, "rb") as b:
                self.assertEqual(a.read(), b.read())

    def test_case_paths(self):
        """Test: rutas de los artefactos"""
        case = SyncCase(os.path.join(self.root, "append"))
        self.assertEqual(case.name, "append")
        self.assertEqual(os.path.basename(case.recreated_path), "recreated")


if __name__ == '__main__':
    unittest.main()
