"""Tests for the FHIR resource REST endpoints."""

import json

import pytest
from documents import diagnostic_report, observation, patient
from httpx import AsyncClient

FHIR_JSON = "application/fhir+json"


async def _create(client: AsyncClient, resource_type: str, document: dict) -> dict:
    response = await client.post(f"/{resource_type}", json=document)
    assert response.status_code == 201, response.text
    return response.json()


def _issue(response) -> dict:
    body = response.json()
    assert body["resourceType"] == "OperationOutcome"
    assert len(body["issue"]) == 1
    return body["issue"][0]


class TestCreateEndpoint:
    """Tests for POST /{Type}."""

    @pytest.mark.asyncio
    async def test_create_returns_201_with_headers(self, client: AsyncClient) -> None:
        """Create returns the resource with Location, ETag and Last-Modified."""
        response = await client.post("/Patient", json=patient(resource_id="P1"))

        assert response.status_code == 201
        assert response.headers["content-type"].startswith(FHIR_JSON)
        assert response.headers["location"] == "http://test/Patient/P1/_history/1"
        assert response.headers["etag"] == 'W/"1"'
        assert response.headers["last-modified"].endswith("GMT")

        body = response.json()
        assert body["id"] == "P1"
        assert body["meta"]["versionId"] == "1"

    @pytest.mark.asyncio
    async def test_create_accepts_fhir_json(self, client: AsyncClient) -> None:
        """application/fhir+json bodies are accepted."""
        response = await client.post(
            "/Patient",
            content=json.dumps(patient(resource_id="P1")),
            headers={"Content-Type": f"{FHIR_JSON}; charset=utf-8"},
        )
        assert response.status_code == 201

    @pytest.mark.asyncio
    async def test_create_rejects_other_media_types(self, client: AsyncClient) -> None:
        """Non-JSON bodies are rejected with 415."""
        response = await client.post(
            "/Patient",
            content="<Patient/>",
            headers={"Content-Type": "application/xml"},
        )
        assert response.status_code == 415
        issue = _issue(response)
        assert issue["code"] == "structure"
        assert "application/fhir+json" in issue["diagnostics"]

    @pytest.mark.asyncio
    async def test_create_malformed_json(self, client: AsyncClient) -> None:
        """Malformed JSON is a 400 OperationOutcome."""
        response = await client.post(
            "/Patient",
            content="{not json",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert _issue(response)["code"] == "structure"

    @pytest.mark.asyncio
    async def test_create_invalid_resource(self, client: AsyncClient) -> None:
        """Validation failures are 400 with the diagnostic."""
        response = await client.post("/Patient", json={"resourceType": "Patient", "gender": "male"})
        assert response.status_code == 400
        issue = _issue(response)
        assert issue["severity"] == "error"
        assert issue["code"] == "invalid"
        assert issue["diagnostics"] == "Patient must have at least one name or identifier"

    @pytest.mark.asyncio
    async def test_create_missing_reference(self, client: AsyncClient) -> None:
        """A dangling subject is a 400 naming the reference."""
        response = await client.post("/Observation", json=observation(subject="Patient/P404"))
        assert response.status_code == 400
        assert _issue(response)["diagnostics"] == "Referenced patient 'Patient/P404' does not exist"

    @pytest.mark.asyncio
    async def test_create_duplicate(self, client: AsyncClient) -> None:
        """A taken id is a 409 conflict."""
        await _create(client, "Patient", patient(resource_id="P1"))
        response = await client.post("/Patient", json=patient(resource_id="P1"))
        assert response.status_code == 409
        assert _issue(response)["code"] == "duplicate"


class TestReadEndpoint:
    """Tests for GET /{Type}/{id}."""

    @pytest.mark.asyncio
    async def test_read(self, client: AsyncClient) -> None:
        """A stored resource is returned with its version headers."""
        await _create(client, "Patient", patient(resource_id="P1"))

        response = await client.get("/Patient/P1")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith(FHIR_JSON)
        assert response.headers["etag"] == 'W/"1"'
        assert response.json()["name"][0]["family"] == "Smith"

    @pytest.mark.asyncio
    async def test_read_unknown_id(self, client: AsyncClient) -> None:
        """An unknown id is a 404 OperationOutcome."""
        response = await client.get("/Patient/P404")
        assert response.status_code == 404
        issue = _issue(response)
        assert issue["code"] == "not-found"
        assert issue["diagnostics"] == "Patient with ID 'P404' not found"

    @pytest.mark.asyncio
    async def test_unknown_type(self, client: AsyncClient) -> None:
        """Unhosted resource types are a 404 OperationOutcome."""
        response = await client.get("/Medication/M1")
        assert response.status_code == 404
        assert _issue(response)["code"] == "not-found"


class TestUpdateEndpoint:
    """Tests for PUT /{Type}/{id}."""

    @pytest.mark.asyncio
    async def test_update(self, client: AsyncClient) -> None:
        """Update returns 200 with the next version."""
        await _create(client, "Patient", patient(resource_id="P1"))

        response = await client.put("/Patient/P1", json=patient(resource_id="P1", family="Jones"))

        assert response.status_code == 200
        assert response.headers["etag"] == 'W/"2"'
        assert response.json()["meta"]["versionId"] == "2"

        read = await client.get("/Patient/P1")
        assert read.json()["name"][0]["family"] == "Jones"

    @pytest.mark.asyncio
    async def test_update_id_mismatch(self, client: AsyncClient) -> None:
        """A body id differing from the URL id is a 400."""
        await _create(client, "Patient", patient(resource_id="P1"))
        response = await client.put("/Patient/P1", json=patient(resource_id="P2"))
        assert response.status_code == 400
        assert _issue(response)["diagnostics"] == "Resource ID 'P2' does not match URL ID 'P1'"

    @pytest.mark.asyncio
    async def test_update_unknown(self, client: AsyncClient) -> None:
        """Updating an unknown id is a 404."""
        response = await client.put("/Patient/P404", json=patient(resource_id="P404"))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_update_rejects_other_media_types(self, client: AsyncClient) -> None:
        """PUT enforces the JSON content types too."""
        await _create(client, "Patient", patient(resource_id="P1"))
        response = await client.put(
            "/Patient/P1", content="family=Jones", headers={"Content-Type": "text/plain"}
        )
        assert response.status_code == 415


class TestDeleteEndpoint:
    """Tests for DELETE /{Type}/{id}."""

    @pytest.mark.asyncio
    async def test_delete_then_read(self, client: AsyncClient) -> None:
        """Deleted resources are 404 on read but available for audit."""
        await _create(client, "Patient", patient(resource_id="P1"))

        response = await client.delete("/Patient/P1")
        assert response.status_code == 204
        assert response.content == b""

        assert (await client.get("/Patient/P1")).status_code == 404

        audit = await client.get("/Patient/P1", params={"includeDeleted": "true"})
        assert audit.status_code == 200
        assert audit.headers["etag"] == 'W/"2"'

    @pytest.mark.asyncio
    async def test_delete_unknown(self, client: AsyncClient) -> None:
        """Deleting an unknown id is a 404."""
        response = await client.delete("/Observation/obs404")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_deleted_hidden_from_search(self, client: AsyncClient) -> None:
        """Search never returns deleted resources."""
        await _create(client, "Patient", patient(resource_id="P1"))
        await _create(client, "Patient", patient(resource_id="P2"))
        await client.delete("/Patient/P1")

        bundle = (await client.get("/Patient")).json()
        assert bundle["total"] == 1
        assert bundle["entry"][0]["resource"]["id"] == "P2"


class TestSearchEndpoint:
    """Tests for GET /{Type} searches."""

    @pytest.mark.asyncio
    async def test_searchset_bundle(self, client: AsyncClient) -> None:
        """Search returns a searchset Bundle with links and fullUrls."""
        await _create(client, "Patient", patient(resource_id="P1"))

        response = await client.get("/Patient", params={"family": "Smith"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith(FHIR_JSON)
        bundle = response.json()
        assert bundle["resourceType"] == "Bundle"
        assert bundle["type"] == "searchset"
        assert bundle["total"] == 1
        assert bundle["entry"][0]["fullUrl"] == "http://test/Patient/P1"
        links = {link["relation"]: link["url"] for link in bundle["link"]}
        assert links["self"] == "http://test/Patient?family=Smith&_count=20&_offset=0"

    @pytest.mark.asyncio
    async def test_clinical_scenario(self, client: AsyncClient) -> None:
        """A patient's results and report are found by patient, code and date."""
        await _create(client, "Patient", patient(resource_id="P1"))
        await _create(client, "Observation", observation(resource_id="hgb"))
        await _create(
            client,
            "Observation",
            observation(resource_id="glu", code="2339-0", effective="2024-03-01T08:00:00Z"),
        )
        await _create(
            client,
            "DiagnosticReport",
            diagnostic_report(resource_id="dr1", results=("Observation/hgb",)),
        )

        response = await client.get(
            "/Observation",
            params=[("patient", "Patient/P1"), ("date", "ge2024-01-01"), ("date", "lt2024-02-01")],
        )
        assert [e["resource"]["id"] for e in response.json()["entry"]] == ["hgb"]

        reports = (await client.get("/DiagnosticReport", params={"result": "Observation/hgb"})).json()
        assert reports["total"] == 1

    @pytest.mark.asyncio
    async def test_invalid_count(self, client: AsyncClient) -> None:
        """Out-of-range paging is a 400 OperationOutcome."""
        response = await client.get("/Patient", params={"_count": "500"})
        assert response.status_code == 400
        issue = _issue(response)
        assert issue["code"] == "invalid"
        assert issue["diagnostics"] == "Parameter _count must be between 0 and 100"

    @pytest.mark.asyncio
    async def test_invalid_date(self, client: AsyncClient) -> None:
        """A malformed date filter is a 400 naming the value."""
        response = await client.get("/Observation", params={"date": "yesterday"})
        assert response.status_code == 400
        assert _issue(response)["diagnostics"] == (
            "Invalid date date: 'yesterday'. Expected format: YYYY-MM-DD"
        )

    @pytest.mark.asyncio
    async def test_invalid_last_updated(self, client: AsyncClient) -> None:
        """The diagnostic names the parameter that carried the bad date."""
        response = await client.get("/Patient", params={"_lastUpdated": "yesterday"})
        assert response.status_code == 400
        issue = _issue(response)
        assert issue["code"] == "invalid"
        assert issue["diagnostics"] == (
            "Invalid _lastUpdated date: 'yesterday'. Expected format: YYYY-MM-DD"
        )

    @pytest.mark.asyncio
    async def test_date_past_datetime_range(self, client: AsyncClient) -> None:
        """A date at the end of the calendar is a 400, not a server error."""
        response = await client.get("/Patient", params={"birthdate": "le9999-12-31"})
        assert response.status_code == 400
        assert "birthdate" in _issue(response)["diagnostics"]

    @pytest.mark.asyncio
    async def test_unknown_params_ignored(self, client: AsyncClient) -> None:
        """Unknown parameters neither fail nor filter."""
        await _create(client, "Patient", patient(resource_id="P1"))
        response = await client.get("/Patient", params={"favourite-colour": "blue"})
        assert response.status_code == 200
        assert response.json()["total"] == 1

    @pytest.mark.asyncio
    async def test_next_link_followed(self, client: AsyncClient) -> None:
        """The next link can be requested as-is."""
        for index in range(3):
            await _create(client, "Patient", patient(resource_id=f"P{index}", family="Müller"))

        first = (await client.get("/Patient", params={"family": "Müller", "_count": "2"})).json()
        next_url = next(link["url"] for link in first["link"] if link["relation"] == "next")
        assert "family=M%C3%BCller" in next_url

        second = (await client.get(next_url)).json()
        assert second["total"] == 3
        assert len(second["entry"]) == 1
        ids = {e["resource"]["id"] for e in first["entry"] + second["entry"]}
        assert ids == {"P0", "P1", "P2"}
