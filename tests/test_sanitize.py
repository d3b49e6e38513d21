from services.sanitize import extract_plain_text, sanitize_rich_text, sanitize_text


class TestSanitizeText:
    def test_markup_characters_removed(self):
        assert sanitize_text('<b>"Merhaba" & hoş</b>') == 'bMerhaba  hoş/b'

    def test_none_is_empty(self):
        assert sanitize_text(None) == ''


class TestSanitizeRichText:
    def test_scripts_and_divs(self):
        raw = '<div>Merhaba <script>alert(1)</script><strong>dünya</strong></div><p> </p>'
        assert sanitize_rich_text(raw) == '<p>Merhaba <strong>dünya</strong></p>'

    def test_attributes_and_unknown_tags_stripped(self):
        raw = '<p style="color:red" onclick="x()">Selam <a href="http://example.com">bağlantı</a></p>'
        assert sanitize_rich_text(raw) == '<p>Selam bağlantı</p>'

    def test_lists_kept(self):
        raw = '<ul><li>Bir</li><li>İki</li></ul>'
        assert sanitize_rich_text(raw) == raw

    def test_nothing_left_gives_empty_paragraph(self):
        assert sanitize_rich_text('<script>alert(1)</script>') == '<p></p>'
        assert sanitize_rich_text('') == ''


class TestExtractPlainText:
    def test_tags_and_entities(self):
        value = '<p>Merhaba&nbsp;<strong>dünya</strong></p><p>Nasılsın?</p>'
        assert extract_plain_text(value) == 'Merhaba dünya Nasılsın?'

    def test_escaped_markup_does_not_come_back(self):
        assert extract_plain_text('<p>&lt;script&gt;</p>') == 'script'
