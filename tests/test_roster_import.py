"""
End-to-end client file imports against a real database.

Run with: python -m pytest tests/test_roster_import.py -v
"""

from datetime import date, datetime
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy.exc import SQLAlchemyError

from models import db, Client, CommunicationCampaign, SavingsSnapshot, Upload
from services.roster import (
    OwnerScopedClientRepository, RowValidationError, SchemaCapabilities, StructuralImportError,
    TrackKind, detect_schema_capabilities, import_clients, parse_roster_csv, reconcile_rows
)
from services.roster.birthdays import BIRTHDAY_SUBJECT
from services.roster.importer import MISSING_POLICY_COLUMNS_MESSAGE

SAVINGS_HEADER = 'Ad Soyad;E-posta;İlk Tasarruf;Güncel Tasarruf'
AYSE_FILE = f'{SAVINGS_HEADER}\nAyşe Yılmaz;ayse@example.com;1000;1500\n'

POLICY_HEADER = 'Kişi;E-posta;Telefon;Poliçe Türü;Poliçe Başlangıç Tarihi;Poliçe Bitiş Tarihi'

FULL_SCHEMA = SchemaCapabilities()


def run_import(repository, content, kind=TrackKind.SAVINGS, capabilities=FULL_SCHEMA, **kwargs):
    return import_clients(repository, capabilities, content=content, kind=kind, **kwargs)


def snapshot_count():
    return SavingsSnapshot.query.count()


class TestParseRosterCsv:
    def test_comma_delimited_with_quotes(self, app):
        rows = parse_roster_csv(
            'name,email,first savings,current savings\n"Deniz Arslan","deniz@example.com",10,20\n',
            TrackKind.SAVINGS,
        )
        assert len(rows) == 1
        assert rows[0].name == 'Deniz Arslan'
        assert rows[0].current_savings == 20

    def test_blank_and_repeated_header_rows_skipped(self, app):
        content = '\n'.join([
            SAVINGS_HEADER,
            ';;;',
            SAVINGS_HEADER,
            'Ayşe Yılmaz;ayse@example.com;1000;1500',
        ])
        rows = parse_roster_csv(content, TrackKind.SAVINGS)
        assert [row.email for row in rows] == ['ayse@example.com']

    def test_short_row_fills_missing_cells_with_empty(self, app):
        with pytest.raises(RowValidationError) as exc_info:
            parse_roster_csv(f'{SAVINGS_HEADER}\nAyşe Yılmaz;ayse@example.com\n', TrackKind.SAVINGS)
        assert exc_info.value.line_number == 2
        assert "İlk tasarruf tutarı sayısal bir değer olmalı." in exc_info.value.messages

    def test_error_cites_physical_line_number(self, app):
        content = f'{SAVINGS_HEADER}\n\nAyşe Yılmaz;ayse@example.com;1000;1500\nCan Öz;gecersiz;1;1\n'
        with pytest.raises(RowValidationError) as exc_info:
            parse_roster_csv(content, TrackKind.SAVINGS)
        assert str(exc_info.value) == "Satır 4: Geçerli bir e-posta adresi gerekli."

    def test_single_line_rejected(self, app):
        with pytest.raises(StructuralImportError) as exc_info:
            parse_roster_csv(SAVINGS_HEADER, TrackKind.SAVINGS)
        assert 'en az bir kayıt' in str(exc_info.value)


class TestSavingsImport:
    def test_first_import_inserts_client_and_snapshot(self, repository, owner):
        result = run_import(repository, AYSE_FILE, filename='musteriler.csv')

        assert result.success is True
        assert result.message == "1 yeni müşteri eklendi."

        client = Client.query.filter_by(owner_id=owner.id).one()
        assert client.name == 'Ayşe Yılmaz'
        assert client.first_savings == Decimal('1000.00')
        assert client.current_savings == Decimal('1500.00')
        assert client.client_type == 'BES'

        snapshots = SavingsSnapshot.query.all()
        assert len(snapshots) == 1
        assert snapshots[0].amount == Decimal('1500.00')

        upload = repository.latest_upload()
        assert upload.filename == 'musteriler.csv'
        assert upload.total_records == 1

    def test_reimport_unchanged_is_idempotent(self, repository, owner):
        run_import(repository, AYSE_FILE)
        result = run_import(repository, AYSE_FILE)

        assert result.success is True
        assert result.message == "1 müşteri güncellendi."
        assert snapshot_count() == 1

        client = Client.query.filter_by(owner_id=owner.id).one()
        assert client.name == 'Ayşe Yılmaz'
        assert client.current_savings == Decimal('1500.00')

    def test_changed_balance_appends_snapshot(self, repository):
        run_import(repository, AYSE_FILE)
        result = run_import(repository, f'{SAVINGS_HEADER}\nAyşe Yılmaz;AYSE@example.com;1000;2.000,50\n')

        assert result.message == "1 müşteri güncellendi."
        amounts = [snapshot.amount for snapshot in SavingsSnapshot.query.order_by(SavingsSnapshot.id)]
        assert amounts == [Decimal('1500.00'), Decimal('2000.50')]

    def test_zero_balance_insert_has_no_snapshot(self, repository):
        run_import(repository, f'{SAVINGS_HEADER}\nYeni Müşteri;yeni@example.com;0;0\n')
        assert Client.query.count() == 1
        assert snapshot_count() == 0

    def test_name_kept_when_only_case_differs(self, repository, owner):
        run_import(repository, f'{SAVINGS_HEADER}\nDeniz Arslan;deniz@example.com;10;10\n')
        run_import(repository, f'{SAVINGS_HEADER}\nDENIZ ARSLAN;deniz@example.com;10;10\n')
        assert Client.query.filter_by(owner_id=owner.id).one().name == 'Deniz Arslan'

        run_import(repository, f'{SAVINGS_HEADER}\nDeniz Arslan Koç;deniz@example.com;10;10\n')
        assert Client.query.filter_by(owner_id=owner.id).one().name == 'Deniz Arslan Koç'

    def test_soft_deleted_client_is_revived(self, repository, owner):
        run_import(repository, AYSE_FILE)
        client = Client.query.filter_by(owner_id=owner.id).one()
        client.deleted_at = datetime.utcnow()
        db.session.commit()

        result = run_import(repository, AYSE_FILE)

        assert result.message == "1 müşteri güncellendi."
        assert Client.query.count() == 1
        assert db.session.get(Client, client.id).deleted_at is None

    def test_duplicate_address_in_one_file_updates_first_insert(self, repository):
        content = f'{SAVINGS_HEADER}\nAli Veli;ali@example.com;1;1\nAli Veli;ALI@example.com;1;2\n'
        result = run_import(repository, content)

        assert result.message == "1 müşteri güncellendi, 1 yeni müşteri eklendi."
        client = Client.query.one()
        assert client.current_savings == Decimal('2.00')
        assert snapshot_count() == 2

    def test_other_owners_clients_untouched(self, repository, other_owner):
        OwnerScopedClientRepository(other_owner.id).insert(
            name='Başka Ayşe', email='ayse@example.com', first_savings=5, current_savings=5
        )
        db.session.commit()

        result = run_import(repository, AYSE_FILE)

        assert result.message == "1 yeni müşteri eklendi."
        other = Client.query.filter_by(owner_id=other_owner.id).one()
        assert other.name == 'Başka Ayşe'
        assert other.current_savings == Decimal('5.00')

    def test_birth_date_skipped_without_column(self, repository):
        content = 'Ad Soyad;E-posta;Doğum Tarihi;İlk Tasarruf;Güncel Tasarruf\nAyşe;ayse@example.com;05.03.1990;1;1\n'
        run_import(repository, content, capabilities=SchemaCapabilities(supports_birth_date=False))
        assert Client.query.one().birth_date is None


class TestRejectedImports:
    def test_missing_file(self, repository):
        result = run_import(repository, None)
        assert result.success is False
        assert result.message == "Yüklemek için bir CSV dosyası seçmelisiniz."

    def test_header_only_file(self, repository):
        result = run_import(repository, SAVINGS_HEADER + '\n')
        assert result.success is False
        assert result.message == "CSV dosyasında başlık satırı ve en az bir kayıt bulunmalıdır."

    def test_only_blank_rows(self, repository):
        result = run_import(repository, f'{SAVINGS_HEADER}\n;;;\n ; ; ; \n')
        assert result.success is False
        assert result.message == "CSV içinde müşteri satırı bulunamadı."

    def test_invalid_row_writes_nothing(self, repository):
        content = f'{SAVINGS_HEADER}\nAyşe Yılmaz;ayse@example.com;1000;1500\nCan;can@example.com;abc;1\n'
        result = run_import(repository, content)

        assert result.success is False
        assert result.message.startswith("Satır 3:")
        assert Client.query.count() == 0
        assert Upload.query.count() == 0

    def test_amount_too_large_for_storage_writes_nothing(self, repository):
        content = '\n'.join([
            SAVINGS_HEADER,
            'Ayşe Yılmaz;ayse@example.com;1000;1500',
            'Can Öz;can@example.com;10;1000000000000000000000000000000',
            'Deniz Ak;deniz@example.com;5;6',
        ])
        result = run_import(repository, content)

        assert result.success is False
        assert result.message.startswith("Satır 3:")
        assert "Güncel tasarruf tutarı en fazla 999.999.999.999,99 olabilir." in result.message
        assert Client.query.count() == 0
        assert Upload.query.count() == 0

    def test_policy_file_missing_end_date_column(self, repository):
        content = 'Kişi;E-posta;Poliçe Türü;Poliçe Başlangıç Tarihi\nCan Öz;can@example.com;Kasko;01.01.2024\n'
        result = run_import(repository, content, kind=TrackKind.POLICY)

        assert result.success is False
        assert 'Poliçe Bitiş Tarihi' in result.message
        assert Client.query.count() == 0

    def test_policy_upload_needs_policy_columns(self, repository):
        content = f'{POLICY_HEADER}\nCan Öz;can@example.com;;Kasko;01.01.2024;01.01.2025\n'
        result = run_import(repository, content, kind=TrackKind.POLICY,
                            capabilities=SchemaCapabilities(supports_policy_columns=False))
        assert result.success is False
        assert result.message == MISSING_POLICY_COLUMNS_MESSAGE


class TestPolicyImport:
    def test_policy_rows_stored_without_snapshots(self, repository):
        content = f'{POLICY_HEADER}\nCan Öz;can@example.com;0532 000 00 00;Kasko;01.01.2024;2025-01-01\n'
        result = run_import(repository, content, kind=TrackKind.POLICY)

        assert result.success is True
        client = Client.query.one()
        assert client.client_type == 'ES'
        assert client.policy_type == 'Kasko'
        assert client.policy_start_date == date(2024, 1, 1)
        assert client.policy_end_date == date(2025, 1, 1)
        assert client.current_savings == Decimal('0.00')
        assert snapshot_count() == 0

    def test_policy_update_keeps_savings(self, repository):
        run_import(repository, AYSE_FILE)
        content = f'{POLICY_HEADER}\nAyşe Yılmaz;ayse@example.com;;Konut;01.02.2024;01.02.2025\n'
        run_import(repository, content, kind=TrackKind.POLICY)

        client = Client.query.one()
        assert client.client_type == 'ES'
        assert client.policy_type == 'Konut'
        assert client.current_savings == Decimal('1500.00')
        assert snapshot_count() == 1


class TestRowFailures:
    def test_storage_failure_only_costs_that_row(self, repository):
        content = '\n'.join([
            SAVINGS_HEADER,
            'Ayşe Yılmaz;ayse@example.com;1000;1500',
            'Bozuk Kayıt;bozuk@example.com;1;1',
            'Can Öz;can@example.com;10;20',
        ])
        real_insert = repository.insert

        def flaky_insert(**fields):
            if fields['email'] == 'bozuk@example.com':
                raise SQLAlchemyError('disk full')
            return real_insert(**fields)

        with patch.object(repository, 'insert', side_effect=flaky_insert):
            result = run_import(repository, content)

        assert result.success is False
        assert result.message == "2 yeni müşteri eklendi. (hatalı: bozuk@example.com)"
        assert sorted(client.email for client in Client.query.all()) == ['ayse@example.com', 'can@example.com']

    def test_existing_client_lookup_failure(self, repository):
        with patch.object(repository, 'find_by_emails', side_effect=SQLAlchemyError('down')):
            result = run_import(repository, AYSE_FILE)

        assert result.success is False
        assert result.message == "Mevcut müşteriler alınamadı."
        assert Client.query.count() == 0
        assert Upload.query.count() == 0

    def test_update_failure_leaves_stored_client_alone(self, repository):
        run_import(repository, AYSE_FILE)
        content = '\n'.join([
            SAVINGS_HEADER,
            'Ayşe Yılmaz;ayse@example.com;1000;2500',
            'Can Öz;can@example.com;10;20',
        ])

        with patch.object(repository, 'update', side_effect=SQLAlchemyError('locked')):
            result = run_import(repository, content)

        assert result.success is False
        assert result.message == "1 yeni müşteri eklendi. (hatalı: ayse@example.com)"
        ayse = Client.query.filter_by(email='ayse@example.com').one()
        assert ayse.current_savings == Decimal('1500.00')
        assert snapshot_count() == 2

    def test_snapshot_failure_rolls_back_the_update(self, repository):
        """The balance change and its snapshot are stored together or not at all."""
        run_import(repository, AYSE_FILE)
        content = f'{SAVINGS_HEADER}\nAyşe Yılmaz;ayse@example.com;1000;2000\n'

        with patch.object(repository, 'append_snapshot', side_effect=SQLAlchemyError('constraint')):
            result = run_import(repository, content)

        assert result.success is False
        assert result.message == "Herhangi bir kayıt güncellenmedi. (hatalı: ayse@example.com)"
        assert Client.query.one().current_savings == Decimal('1500.00')
        assert snapshot_count() == 1

    def test_summary_counts(self, repository):
        rows = parse_roster_csv(AYSE_FILE, TrackKind.SAVINGS)
        summary = reconcile_rows(repository, rows, FULL_SCHEMA)
        assert (summary.inserted, summary.updated, summary.snapshots) == (1, 0, 1)
        assert summary.success


class TestBirthdayCampaign:
    def test_birthday_rows_get_draft_campaign(self, repository):
        content = '\n'.join([
            'Ad Soyad;E-posta;Doğum Tarihi;İlk Tasarruf;Güncel Tasarruf',
            'Ayşe Yılmaz;ayse@example.com;05.03.1990;1000;1500',
            'Can Öz;can@example.com;06.03.1985;10;20',
        ])
        result = run_import(repository, content, today=date(2024, 3, 5))

        assert result.success is True
        campaigns = repository.list_campaigns()
        assert len(campaigns) == 1
        campaign = campaigns[0]
        assert campaign.subject == BIRTHDAY_SUBJECT
        assert campaign.status == CommunicationCampaign.STATUS_DRAFT
        assert '{{CLIENT_NAME}}' in campaign.body_text
        assert '<br>' in campaign.body_html
        assert [(r.client_name, r.client_email, r.client_id) for r in campaign.recipients] == [
            ('Ayşe Yılmaz', 'ayse@example.com', None)
        ]

    def test_no_birthdays_no_campaign(self, repository):
        run_import(repository, AYSE_FILE, today=date(2024, 3, 5))
        assert repository.list_campaigns() == []

    def test_campaign_failure_does_not_fail_import(self, repository):
        content = 'Ad Soyad;E-posta;Doğum Tarihi;İlk Tasarruf;Güncel Tasarruf\nAyşe;ayse@example.com;05.03.1990;1;2\n'
        with patch.object(repository, 'create_campaign', side_effect=SQLAlchemyError('nope')):
            result = run_import(repository, content, today=date(2024, 3, 5))

        assert result.success is True
        assert result.message == "1 yeni müşteri eklendi."

    def test_recipient_failure_keeps_campaign_and_import_result(self, repository):
        content = 'Ad Soyad;E-posta;Doğum Tarihi;İlk Tasarruf;Güncel Tasarruf\nAyşe;ayse@example.com;05.03.1990;1;2\n'
        with patch.object(repository, 'add_recipient', side_effect=SQLAlchemyError('nope')):
            result = run_import(repository, content, today=date(2024, 3, 5))

        assert result.success is True
        assert result.message == "1 yeni müşteri eklendi."
        campaigns = repository.list_campaigns()
        assert len(campaigns) == 1
        assert campaigns[0].recipients == []
        assert Client.query.count() == 1


class TestSchemaCapabilities:
    def test_full_schema_detected(self, app):
        capabilities = detect_schema_capabilities()
        assert capabilities.supports_birth_date is True
        assert capabilities.supports_policy_columns is True
