from urllib.parse import quote

import httpx

from shared.clients.store.StoreClientInterface import StoreClientInterface
from shared.clients.store.models.StoreDocument import StoreDocument, StoreDocumentsListResponse
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.query import StructuredQuery
from shared.models.value import MapValue, document_from_wire, parse_timestamp

FIRESTORE_API = "https://firestore.googleapis.com/v1"


class StoreClientFirestore(StoreClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._project_id = self.get_config_val("PROJECT_ID", default=None, val_type="string")
        self._api_key = self.get_config_val("API_KEY", default="", val_type="string")
        self._id_token = self.get_config_val("ID_TOKEN", default="", val_type="string")
        self._database = self.get_config_val("DATABASE", default="(default)", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Firestore"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="PROJECT_ID", val_type="string", default=None),
            EnvConfig(env_key="API_KEY", val_type="string", default=""),
            EnvConfig(env_key="ID_TOKEN", val_type="string", default=""),
            EnvConfig(env_key="DATABASE", val_type="string", default="(default)"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        if self._id_token:
            return {"Authorization": f"Bearer {self._id_token}"}
        return {}

    def _get_auth_params(self) -> dict:
        if self._api_key:
            return {"key": self._api_key}
        return {}

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return f"{FIRESTORE_API}/projects/{self._project_id}/databases/{self._database}/documents"

    def _get_endpoint_healthcheck(self) -> str:
        return ":listCollectionIds"

    def _get_endpoint_collection(self, collection: str) -> str:
        return "/" + collection.strip("/")

    def _get_endpoint_document(self, collection: str, document_id: str) -> str:
        return f"/{collection.strip('/')}/{quote(document_id, safe='')}"

    def _get_endpoint_run_query(self) -> str:
        return ":runQuery"

    def _get_endpoint_collection_ids(self) -> str:
        return ":listCollectionIds"

    def _get_params_list(self, page_size: int, page_token: str | None = None) -> dict:
        params: dict = {"pageSize": page_size}
        if page_token:
            params["pageToken"] = page_token
        return params

    def _get_params_create(self, document_id: str | None = None) -> dict:
        return {"documentId": document_id} if document_id else {}

    def _get_params_update(self, document: MapValue) -> dict:
        # only the sent fields are overwritten, the rest of the document stays
        return {"updateMask.fieldPaths": list(document.fields)}

    ################ BODIES ##################
    def _build_document_body(self, document: MapValue) -> dict:
        return {"fields": document.to_wire_fields()}

    def _build_run_query_body(self, query: StructuredQuery) -> dict:
        return {"structuredQuery": query.to_wire()}

    def _build_collection_ids_body(self, page_token: str | None = None) -> dict:
        body: dict = {"pageSize": 300}
        if page_token:
            body["pageToken"] = page_token
        return body

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_healthcheck(self) -> httpx.Response:
        return await self.do_request(method="POST", endpoint=self._get_endpoint_healthcheck(), json={"pageSize": 1}, raise_on_error=True)

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    def _parse_endpoint_document(self, response: dict) -> StoreDocument:
        name = response.get("name", "")
        create_time = response.get("createTime")
        update_time = response.get("updateTime")
        return StoreDocument(
            engine=self._get_engine_name(),
            id=name.rsplit("/", 1)[-1],
            name=name or None,
            fields=document_from_wire(response.get("fields", {})),
            create_time=parse_timestamp(create_time) if create_time else None,
            update_time=parse_timestamp(update_time) if update_time else None,
        )

    def _parse_endpoint_documents(self, response: dict) -> StoreDocumentsListResponse:
        return StoreDocumentsListResponse(
            engine=self._get_engine_name(),
            documents=[self._parse_endpoint_document(item) for item in response.get("documents", [])],
            nextPageToken=response.get("nextPageToken") or None,
        )

    def _parse_endpoint_run_query(self, response: list | dict) -> list[StoreDocument]:
        # one entry per result, plus entries without "document" carrying only progress info
        entries = response if isinstance(response, list) else [response]
        return [self._parse_endpoint_document(entry["document"]) for entry in entries if entry.get("document")]

    def _parse_endpoint_collection_ids(self, response: dict) -> tuple[list[str], str | None]:
        return list(response.get("collectionIds", [])), response.get("nextPageToken") or None
