"""
Export Tests
"""
import csv
import io
import json

from grantscope.facets import merge_grantees
from grantscope.models import Foundation
from grantscope.services.export_service import (
    CSV_COLUMNS,
    format_currency,
    foundations_pdf,
    grantees_csv,
)


def read_csv(body):
    return list(csv.reader(io.StringIO(body)))


class TestExportService:
    def test_format_currency(self):
        assert format_currency(1250000) == "$1,250,000"
        assert format_currency(0) == "$0"

    def test_csv_rows(self, foundation_dict):
        grantees = merge_grantees([Foundation.from_dict(foundation_dict)])
        rows = read_csv(grantees_csv(grantees))
        assert rows[0] == CSV_COLUMNS
        assert rows[1] == [
            "Lakeshore Community Foundation", "Madison Food Pantry", "2023",
            "Madison", "WI", "10000", "Human Services",
        ]
        assert len(rows) == 4

    def test_csv_quotes_commas(self):
        f = Foundation.from_dict({"name": "X", "grantees": [
            {"name": "Food, Shelter & More", "year": 2023, "amount": 5, "purpose": "Human Services"}]})
        rows = read_csv(grantees_csv(merge_grantees([f])))
        assert rows[1][1] == "Food, Shelter & More"

    def test_pdf_bytes(self, foundation_dict):
        f = Foundation.from_dict(foundation_dict)
        pdf = foundations_pdf([f], merge_grantees([f]), title="Lakeshore <Report>")
        assert pdf.startswith(b"%PDF")

    def test_pdf_with_no_grantees(self):
        f = Foundation.from_dict({"name": "Empty Trust", "sample": True})
        assert foundations_pdf([f], []).startswith(b"%PDF")


class TestExportEndpoints:
    """Test CSV and PDF download endpoints"""

    def test_csv_download(self, client, foundation_dict):
        response = client.post('/api/export/csv', json={'foundations': [foundation_dict]})
        assert response.status_code == 200
        assert response.mimetype == 'text/csv'
        disposition = response.headers['Content-Disposition']
        assert 'attachment' in disposition
        assert 'form990_grantees_' in disposition
        rows = read_csv(response.get_data(as_text=True))
        assert len(rows) == 4

    def test_csv_applies_filters(self, client, foundation_dict):
        payload = {
            'foundations': [foundation_dict],
            'filters': {'years': [2023], 'amountRange': [0, 15000]},
        }
        response = client.post('/api/export/csv', json=payload)
        rows = read_csv(response.get_data(as_text=True))
        assert [r[1] for r in rows[1:]] == ['Madison Food Pantry']

    def test_pdf_download(self, client, foundation_dict):
        response = client.post('/api/export/pdf', json={
            'foundations': [foundation_dict],
            'title': 'Lakeshore grants',
        })
        assert response.status_code == 200
        assert response.mimetype == 'application/pdf'
        assert response.data.startswith(b'%PDF')
        assert '.pdf' in response.headers['Content-Disposition']

    def test_requires_foundations(self, client):
        response = client.post('/api/export/csv', json={'grantees': []})
        assert response.status_code == 400
        assert 'foundations' in json.loads(response.data)['error']

    def test_rejects_empty_list(self, client):
        response = client.post('/api/export/pdf', json={'foundations': []})
        assert response.status_code == 400

    def test_rejects_filters_that_are_not_an_object(self, client, foundation_dict):
        response = client.post('/api/export/csv', json={
            'foundations': [foundation_dict],
            'filters': ['WI'],
        })
        assert response.status_code == 400
        assert json.loads(response.data)['error'] == 'filters must be an object'

    def test_rejects_non_numeric_years(self, client, foundation_dict):
        response = client.post('/api/export/pdf', json={
            'foundations': [foundation_dict],
            'filters': {'years': ['last year']},
        })
        assert response.status_code == 400
