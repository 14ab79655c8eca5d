import json
import os
import tempfile
import unittest

import numpy as np

from gradscope import Engine, EngineConfig, decode_weights, load_weights, read_manifest


def _f32(values) -> bytes:
    return np.asarray(values, dtype="<f4").tobytes()


def _i32(values) -> bytes:
    return np.asarray(values, dtype="<i4").tobytes()


MANIFEST = [
    {
        "paths": ["group1-shard1of2", "group1-shard2of2"],
        "weights": [
            {"name": "dense/kernel", "shape": [2, 3], "dtype": "float32"},
            {"name": "dense/bias", "shape": [3], "dtype": "float32"},
        ],
    },
    {
        "paths": ["group2-shard1of1"],
        "weights": [
            {"name": "step", "shape": [], "dtype": "int32"},
            {"name": "embedding", "shape": [2, 2]},
        ],
    },
]

KERNEL = np.arange(6, dtype=np.float32).reshape(2, 3) / 10.0
BIAS = np.array([-1.0, 0.5, 2.0], dtype=np.float32)
EMBEDDING = np.array([[1.0, 2.0], [3.0, 4.0]], dtype=np.float32)

GROUP1 = _f32(KERNEL) + _f32(BIAS)
# The shard boundary falls inside the kernel.
SHARDS1 = [GROUP1[:10], GROUP1[10:]]
GROUP2 = _i32([7]) + _f32(EMBEDDING)


class TestDecodeWeights(unittest.TestCase):
    def setUp(self):
        self.engine = Engine("cpu", config=EngineConfig())

    def tearDown(self):
        self.engine.close()

    def test_decodes_every_weight(self):
        out = decode_weights(self.engine, MANIFEST, [SHARDS1, GROUP2])
        self.assertEqual(
            sorted(out), ["dense/bias", "dense/kernel", "embedding", "step"]
        )
        np.testing.assert_allclose(out["dense/kernel"].to_numpy(), KERNEL)
        np.testing.assert_allclose(out["dense/bias"].to_numpy(), BIAS)
        np.testing.assert_allclose(out["embedding"].to_numpy(), EMBEDDING)
        self.assertEqual(out["step"].shape, ())
        self.assertEqual(str(out["step"].dtype), "int32")
        self.assertEqual(out["step"].item(), 7)

    def test_subset_skips_unneeded_groups(self):
        out = decode_weights(
            self.engine, MANIFEST, [None, GROUP2], weight_names=["embedding"]
        )
        self.assertEqual(list(out), ["embedding"])
        np.testing.assert_allclose(out["embedding"].to_numpy(), EMBEDDING)

    def test_unknown_name_lists_manifest(self):
        with self.assertRaises(ValueError) as ctx:
            decode_weights(self.engine, MANIFEST, [GROUP1, GROUP2], weight_names=["nope"])
        self.assertIn("nope", str(ctx.exception))
        self.assertIn("dense/kernel", str(ctx.exception))

    def test_duplicate_names_raise(self):
        manifest = [
            {"paths": ["a"], "weights": [{"name": "w", "shape": [1]}]},
            {"paths": ["b"], "weights": [{"name": "w", "shape": [1]}]},
        ]
        with self.assertRaises(ValueError):
            decode_weights(self.engine, manifest, [_f32([1.0]), _f32([2.0])])

    def test_unknown_dtype_raises(self):
        manifest = [
            {"paths": ["a"], "weights": [{"name": "w", "shape": [1], "dtype": "float16"}]}
        ]
        with self.assertRaises(ValueError):
            decode_weights(self.engine, manifest, [b"\x00\x00"])

    def test_short_group_raises(self):
        with self.assertRaises(ValueError):
            decode_weights(self.engine, MANIFEST, [GROUP1[:-4], GROUP2])

    def test_group_count_must_match(self):
        with self.assertRaises(ValueError):
            decode_weights(self.engine, MANIFEST, [GROUP1])

    def test_missing_group_bytes_raise(self):
        with self.assertRaises(ValueError):
            decode_weights(self.engine, MANIFEST, [None, GROUP2])

    def test_failed_decode_creates_no_tensors(self):
        e = self.engine
        duplicate = [
            MANIFEST[0],
            {"paths": ["b"], "weights": [{"name": "dense/bias", "shape": [3]}]},
        ]
        live = e.num_live_tensors()
        with self.assertRaises(ValueError):
            decode_weights(e, duplicate, [GROUP1, _f32(BIAS)])
        self.assertEqual(e.num_live_tensors(), live)
        with self.assertRaises(ValueError):
            decode_weights(e, MANIFEST, [GROUP1, GROUP2[:-4]])
        self.assertEqual(e.num_live_tensors(), live)


class TestLoadWeights(unittest.TestCase):
    def test_reads_files_relative_to_prefix(self):
        with tempfile.TemporaryDirectory() as tmp:
            for rel, data in zip(
                ["group1-shard1of2", "group1-shard2of2", "group2-shard1of1"],
                SHARDS1 + [GROUP2],
            ):
                with open(os.path.join(tmp, rel), "wb") as f:
                    f.write(data)
            manifest_path = os.path.join(tmp, "weights_manifest.json")
            with open(manifest_path, "w", encoding="utf-8") as f:
                json.dump(MANIFEST, f)

            manifest = read_manifest(manifest_path)
            with Engine("cpu", config=EngineConfig()) as e:
                out = load_weights(e, manifest, tmp, weight_names=["dense/bias"])
                np.testing.assert_allclose(out["dense/bias"].to_numpy(), BIAS)

                # The second group file is never opened for this subset.
                os.remove(os.path.join(tmp, "group2-shard1of1"))
                out = load_weights(e, manifest, tmp, weight_names=["dense/kernel"])
                np.testing.assert_allclose(out["dense/kernel"].to_numpy(), KERNEL)

    def test_missing_file_raises(self):
        with tempfile.TemporaryDirectory() as tmp:
            with Engine("cpu", config=EngineConfig()) as e:
                with self.assertRaises(FileNotFoundError):
                    load_weights(e, MANIFEST, tmp)


if __name__ == "__main__":
    unittest.main()
