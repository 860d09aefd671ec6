import unittest


class TestSubstitute(unittest.TestCase):
    def test_both_forms_and_input(self) -> None:
        from shellmate.kernel.template import substitute

        out = substitute("run ${NAME}-$NAME $INPUT ${INPUT}", {"NAME": "x"}, "in")
        self.assertEqual(out, "run x-x in in")

    def test_unknown_left_verbatim(self) -> None:
        from shellmate.kernel.template import substitute

        self.assertEqual(substitute("echo $HOME ${UNSET} $_BUFFER $*", {}, ""), "echo $HOME ${UNSET} $_BUFFER $*")

    def test_longest_name_wins(self) -> None:
        from shellmate.kernel.template import substitute

        self.assertEqual(substitute("$AB $A", {"A": "1", "AB": "2"}), "2 1")

    def test_single_pass(self) -> None:
        from shellmate.kernel.template import substitute

        self.assertEqual(substitute("$A", {"A": "$B", "B": "no"}), "$B")
        self.assertEqual(substitute("$INPUT", {}, "$A\\1"), "$A\\1")


class TestFormatValue(unittest.TestCase):
    def test_types(self) -> None:
        from shellmate.contracts.v1 import VariableDef
        from shellmate.kernel.variables import format_value

        self.assertEqual(format_value("no", VariableDef(type="bool")), "false")
        self.assertEqual(format_value(1, VariableDef(type="bool")), "true")
        self.assertEqual(format_value("12", VariableDef(type="int")), "12")
        self.assertEqual(format_value("0.5", VariableDef(type="float")), "0.5")
        self.assertEqual(format_value(["a", "b"], VariableDef(type="list")), "a b")
        self.assertEqual(format_value(7, None), "7")
        self.assertEqual(format_value(None, VariableDef()), "")


class TestVariableStore(unittest.TestCase):
    def test_defaults_and_set(self) -> None:
        from shellmate.contracts.v1 import Activity
        from shellmate.kernel.variables import VariableStore

        activity = Activity.model_validate(
            {
                "variables": {
                    "MODE": {"type": "choice", "choices": ["fast", "slow"], "default": "fast"},
                    "EMPTY": {"type": "string"},
                }
            }
        )
        store = VariableStore()
        store.load_activity(activity)
        self.assertEqual(store.get_all(), {"MODE": "fast"})
        self.assertEqual(set(store.get_all_definitions()), {"MODE", "EMPTY"})

        store.set("MODE", "slow")
        self.assertEqual(store.get("MODE"), "slow")
        with self.assertRaises(ValueError):
            store.set("MODE", "medium")

        store.load_activity(activity)
        self.assertEqual(store.get("MODE"), "slow")

        store.unset("MODE")
        self.assertFalse(store.has("MODE"))


if __name__ == "__main__":
    unittest.main()
