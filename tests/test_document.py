import sys
import tempfile
import unittest
from pathlib import Path
from typing import Optional

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from pakscape.document import Clipboard, PakDocument, document_from_directory, new_document
from pakscape.errors import MoveIntoSelfError, NameCollisionError
from pakscape.reader import load_archive_file, load_pak
from pakscape.tree import ArchivedBytes, EntryNode, LocalBytes, collect_paths
from pakscape.writer import write_pak


def _open_document(clipboard: Optional[Clipboard] = None) -> PakDocument:
    tree = EntryNode.folder(
        "",
        [
            EntryNode.folder(
                "maps",
                [EntryNode.file("e1m1.bsp", b"E1M1"), EntryNode.folder("dm", [EntryNode.file("dm1.bsp", b"DM1")])],
            ),
            EntryNode.folder("progs", [EntryNode.file("player.mdl", b"PLAYER")]),
            EntryNode.file("default.cfg", b"CFG"),
        ],
    )
    pak_file = load_pak(write_pak(tree).data, "pak0.pak")
    return PakDocument(pak_file, clipboard=clipboard)


class RenameTests(unittest.TestCase):
    def test_rename_updates_name_and_archive_entry(self) -> None:
        document = _open_document()
        player = document.root.child_named("progs").child_named("player.mdl")

        applied = document.rename(player, "  soldier.mdl ")

        self.assertEqual(applied, "soldier.mdl")
        self.assertEqual(player.entry.name, "progs/soldier.mdl")
        self.assertEqual(player.resolve(), b"PLAYER")
        self.assertTrue(document.has_unsaved_changes)

    def test_rename_truncates_to_fit_the_parent_path(self) -> None:
        document = _open_document()
        e1m1 = document.root.child_named("maps").child_named("e1m1.bsp")

        applied = document.rename(e1m1, "x" * 80)

        self.assertEqual(applied, "x" * 50)
        self.assertEqual(len(document.path_of(e1m1).encode("utf-8")), 55)
        write_pak(document.root)

    def test_rename_replaces_slashes(self) -> None:
        document = _open_document()
        node = document.root.child_named("default.cfg")
        self.assertEqual(document.rename(node, "a/b.cfg"), "a_b.cfg")

    def test_blank_name_keeps_the_old_one(self) -> None:
        document = _open_document()
        node = document.root.child_named("default.cfg")
        self.assertEqual(document.rename(node, "   "), "default.cfg")
        self.assertFalse(document.has_unsaved_changes)

    def test_rename_onto_sibling_is_rejected(self) -> None:
        document = _open_document()
        node = document.root.child_named("default.cfg")
        with self.assertRaises(NameCollisionError):
            document.rename(node, "MAPS")
        self.assertEqual(node.name, "default.cfg")


class EditingTests(unittest.TestCase):
    def test_new_folders_get_numbered_names(self) -> None:
        document = new_document()
        first = document.add_folder()
        second = document.add_folder()
        third = document.add_folder(first)

        self.assertEqual(first.name, "New Folder")
        self.assertEqual(second.name, "New Folder 2")
        self.assertEqual(third.name, "New Folder")
        self.assertEqual(document.path_of(third), "New Folder/New Folder")

    def test_delete_removes_nested_nodes(self) -> None:
        document = _open_document()
        maps = document.root.child_named("maps")
        dm1 = maps.child_named("dm").child_named("dm1.bsp")
        player = document.root.child_named("progs").child_named("player.mdl")

        removed = document.delete([dm1.node_id, player.node_id])

        self.assertEqual({node.name for node in removed}, {"dm1.bsp", "player.mdl"})
        self.assertEqual(set(collect_paths(document.root)), {"maps/e1m1.bsp", "default.cfg"})

    def test_import_merges_folders_and_replaces_files(self) -> None:
        document = _open_document()
        with tempfile.TemporaryDirectory() as tmpdir:
            source = Path(tmpdir) / "maps"
            source.mkdir()
            (source / "e1m1.bsp").write_bytes(b"NEW E1M1")
            (source / "e1m2.bsp").write_bytes(b"E1M2")

            document.import_paths([source])

        paths = collect_paths(document.root)
        self.assertEqual(paths["maps/e1m1.bsp"], b"NEW E1M1")
        self.assertEqual(paths["maps/e1m2.bsp"], b"E1M2")
        self.assertEqual(paths["maps/dm/dm1.bsp"], b"DM1")
        self.assertEqual([child.name for child in document.root.child_named("maps").children][0], "dm")

    def test_imported_folder_does_not_shadow_a_sibling_file(self) -> None:
        document = new_document()
        document.add_file(None, "maps", b"not a folder")
        with tempfile.TemporaryDirectory() as tmpdir:
            source = Path(tmpdir) / "maps"
            source.mkdir()
            (source / "e1m1.bsp").write_bytes(b"E1M1")

            document.import_paths([source])

        names = [child.name.lower() for child in document.root.children]
        self.assertEqual(len(names), len(set(names)))
        self.assertEqual(
            collect_paths(document.root), {"maps": b"not a folder", "maps copy/e1m1.bsp": b"E1M1"}
        )
        reloaded = load_pak(write_pak(document.root).data)
        self.assertEqual(collect_paths(reloaded.root), collect_paths(document.root))

    def test_extract_data_returns_file_bytes(self) -> None:
        document = _open_document()
        progs = document.root.child_named("progs")
        self.assertEqual(document.extract_data(progs.child_named("player.mdl")), b"PLAYER")
        with self.assertRaises(IsADirectoryError):
            document.extract_data(progs)

    def test_document_from_directory_is_unsaved(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            (Path(tmpdir) / "autoexec.cfg").write_bytes(b"exec")
            document = document_from_directory(Path(tmpdir))
        self.assertTrue(document.has_unsaved_changes)
        self.assertIsNone(document.path)
        self.assertEqual(collect_paths(document.root), {"autoexec.cfg": b"exec"})


class ClipboardTests(unittest.TestCase):
    def test_copy_paste_into_same_folder_adds_copy_suffix(self) -> None:
        document = _open_document()
        node = document.root.child_named("default.cfg")
        document.copy([node])

        first = document.paste()
        second = document.paste()

        self.assertEqual(first[0].name, "default copy.cfg")
        self.assertEqual(second[0].name, "default copy 2.cfg")
        self.assertFalse(document.clipboard.is_empty)
        self.assertIsInstance(first[0].payload, LocalBytes)
        self.assertNotEqual(first[0].node_id, node.node_id)

    def test_cut_folder_into_its_own_descendant_is_refused(self) -> None:
        document = _open_document()
        maps = document.root.child_named("maps")
        dm = maps.child_named("dm")
        before = collect_paths(document.root)

        document.cut([maps])
        with self.assertRaises(MoveIntoSelfError):
            document.paste(dm)
        with self.assertRaises(MoveIntoSelfError):
            document.paste(maps)

        self.assertEqual(collect_paths(document.root), before)

    def test_cut_moves_between_documents(self) -> None:
        clipboard = Clipboard()
        source = _open_document(clipboard)
        target = new_document(clipboard)
        progs = source.root.child_named("progs")

        source.cut([progs])
        pasted = target.paste()

        self.assertEqual([node.name for node in pasted], ["progs"])
        self.assertIsNone(source.root.child_named("progs"))
        self.assertEqual(collect_paths(target.root), {"progs/player.mdl": b"PLAYER"})
        self.assertTrue(source.has_unsaved_changes)
        self.assertTrue(target.has_unsaved_changes)
        self.assertTrue(clipboard.is_empty)

    def test_paste_survives_closing_the_source(self) -> None:
        clipboard = Clipboard()
        source = _open_document(clipboard)
        source.copy([source.root.child_named("maps")])
        source.close()

        target = new_document(clipboard)
        target.paste()
        self.assertEqual(collect_paths(target.root)["maps/e1m1.bsp"], b"E1M1")

    def test_paste_into_file_is_refused(self) -> None:
        document = _open_document()
        node = document.root.child_named("default.cfg")
        document.copy([node])
        with self.assertRaises(NotADirectoryError):
            document.paste(node)


class SaveTests(unittest.TestCase):
    def test_save_rebinds_payloads_to_the_written_archive(self) -> None:
        document = _open_document()
        document.add_file(document.root.child_named("maps"), "e1m2.bsp", b"E1M2")
        document.rename(document.root.child_named("default.cfg"), "config.cfg")

        with tempfile.TemporaryDirectory() as tmpdir:
            target = Path(tmpdir) / "pak1.pak"
            document.save(target)

            written = target.read_bytes()
            self.assertFalse(document.has_unsaved_changes)
            self.assertEqual(document.path, target)
            for node in (
                document.root.child_named("maps").child_named("e1m2.bsp"),
                document.root.child_named("config.cfg"),
            ):
                self.assertIsInstance(node.payload, ArchivedBytes)
                self.assertEqual(len(node.payload.backing), len(written))

            reopened = load_archive_file(target)
            self.assertEqual(collect_paths(reopened.root), collect_paths(document.root))
            reopened.close()

            self.assertEqual(write_pak(document.root).data, written)

    def test_save_as_pk3(self) -> None:
        document = _open_document()
        with tempfile.TemporaryDirectory() as tmpdir:
            target = Path(tmpdir) / "pak0.pk3"
            document.save(target)
            reopened = PakDocument.open(target)
            self.assertEqual(collect_paths(reopened.root), collect_paths(document.root))

    def test_export_writes_selected_folder(self) -> None:
        document = _open_document()
        with tempfile.TemporaryDirectory() as tmpdir:
            exported = document.export(document.root.child_named("maps"), Path(tmpdir))
            self.assertEqual((exported / "dm" / "dm1.bsp").read_bytes(), b"DM1")

    def test_save_without_destination_is_an_error(self) -> None:
        with self.assertRaises(ValueError):
            new_document().save()


if __name__ == "__main__":
    unittest.main()
