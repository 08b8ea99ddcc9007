from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.clients.store.models.StoreDocument import StoreDocument, StoreDocumentsListResponse
from shared.errors import StoreRequestError
from shared.helper.HelperConfig import HelperConfig
from shared.models.query import StructuredQuery
from shared.models.value import MapValue, document_from_python


class StoreClientInterface(ClientInterface):
    """Document store capability: CRUD, sampling and structured queries."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "store"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_collection(self, collection: str) -> str:
        """
        Returns the endpoint path of a collection (e.g. "/users").
        """
        pass

    @abstractmethod
    def _get_endpoint_document(self, collection: str, document_id: str) -> str:
        """
        Returns the endpoint path of a single document (e.g. "/users/abc").
        """
        pass

    @abstractmethod
    def _get_endpoint_run_query(self) -> str:
        """
        Returns the endpoint path that executes structured queries.
        """
        pass

    @abstractmethod
    def _get_endpoint_collection_ids(self) -> str:
        """
        Returns the endpoint path that lists root collection ids.
        """
        pass

    @abstractmethod
    def _get_params_list(self, page_size: int, page_token: str | None = None) -> dict:
        """
        Returns the query parameters of one listing page.
        """
        pass

    @abstractmethod
    def _get_params_create(self, document_id: str | None = None) -> dict:
        pass

    @abstractmethod
    def _get_params_update(self, document: MapValue) -> dict:
        pass

    ################ BODIES ##################
    @abstractmethod
    def _build_document_body(self, document: MapValue) -> dict:
        pass

    @abstractmethod
    def _build_run_query_body(self, query: StructuredQuery) -> dict:
        pass

    @abstractmethod
    def _build_collection_ids_body(self, page_token: str | None = None) -> dict:
        pass

    ##########################################
    ########### RESPONSE PARSER ##############
    ##########################################

    @abstractmethod
    def _parse_endpoint_document(self, response: dict) -> StoreDocument:
        pass

    @abstractmethod
    def _parse_endpoint_documents(self, response: dict) -> StoreDocumentsListResponse:
        pass

    @abstractmethod
    def _parse_endpoint_run_query(self, response: list | dict) -> list[StoreDocument]:
        pass

    @abstractmethod
    def _parse_endpoint_collection_ids(self, response: dict) -> tuple[list[str], str | None]:
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    ############# GET REQUESTS ##############
    async def do_get(self, collection: str, document_id: str) -> StoreDocument | None:
        """
        Fetches a single document.

        Args:
            collection (str): Collection name.
            document_id (str): Document id.

        Returns:
            StoreDocument | None: The document, or None if it does not exist.

        Raises:
            StoreRequestError: On any other non-success status.
        """
        resp = await self.do_request(method="GET", endpoint=self._get_endpoint_document(collection, document_id))
        if resp.status_code == 404:
            return None
        if resp.status_code >= 300:
            self.logging.error("Fetching document '%s' of '%s' failed with status %d: %s", document_id, collection, resp.status_code, resp.text)
            raise StoreRequestError(str(resp.request.url), resp.status_code, resp.text)
        return self._parse_endpoint_document(resp.json())

    ############# LISTING REQUESTS ##############
    async def do_list(self, collection: str, max_docs: int | None = None, page_size: int = 300) -> list[StoreDocument]:
        """
        Lists the documents of a collection, following the page tokens.

        Args:
            collection (str): Collection name.
            max_docs (int | None): Stop after this many documents. None lists everything.
            page_size (int): Documents requested per page.

        Returns:
            list[StoreDocument]: The documents in store order.
        """
        documents: list[StoreDocument] = []
        page_token: str | None = None
        page = 1
        while True:
            size = page_size if max_docs is None else max(1, min(page_size, max_docs - len(documents)))
            resp = await self.do_request(
                method="GET",
                endpoint=self._get_endpoint_collection(collection),
                params=self._get_params_list(page_size=size, page_token=page_token),
                raise_on_error=True,
            )
            list_response = self._parse_endpoint_documents(resp.json())
            documents.extend(list_response.documents)
            self.logging.debug("Fetched page %d of '%s' from %s, documents so far: %d", page, collection, self._get_engine_name(), len(documents))

            page_token = list_response.nextPageToken
            page += 1
            if not page_token or (max_docs is not None and len(documents) >= max_docs):
                break

        if max_docs is not None:
            documents = documents[:max_docs]
        return documents

    async def do_sample(self, collection: str, max_docs: int) -> list[tuple[str, MapValue]]:
        """
        Returns up to max_docs (id, document) pairs of a collection.
        """
        if max_docs <= 0:
            return []
        documents = await self.do_list(collection, max_docs=max_docs)
        return [(doc.id, doc.fields) for doc in documents]

    ############# QUERY REQUESTS ##############
    async def do_apply(self, query: StructuredQuery) -> list[MapValue]:
        """
        Executes a compiled structured query.

        Returns:
            list[MapValue]: The matching documents in result order.
        """
        resp = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_run_query(),
            json=self._build_run_query_body(query),
            raise_on_error=True,
        )
        return [doc.fields for doc in self._parse_endpoint_run_query(resp.json())]

    ############# WRITE REQUESTS ##############
    async def do_create(self, collection: str, document: MapValue | dict, document_id: str | None = None) -> str:
        """
        Creates a document.

        Args:
            collection (str): Collection name.
            document (MapValue | dict): Document content.
            document_id (str | None): Explicit id; the store assigns one if omitted.

        Returns:
            str: The id of the created document.
        """
        doc = document_from_python(document)
        resp = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_collection(collection),
            params=self._get_params_create(document_id),
            json=self._build_document_body(doc),
            raise_on_error=True,
        )
        created = self._parse_endpoint_document(resp.json())
        self.logging.debug("Created document '%s' in '%s'.", created.id, collection)
        return created.id

    async def do_update(self, collection: str, document_id: str, document: MapValue | dict) -> None:
        """
        Overwrites the given fields of an existing document.
        """
        doc = document_from_python(document)
        await self.do_request(
            method="PATCH",
            endpoint=self._get_endpoint_document(collection, document_id),
            params=self._get_params_update(doc),
            json=self._build_document_body(doc),
            raise_on_error=True,
        )

    async def do_delete(self, collection: str, document_id: str) -> None:
        await self.do_request(
            method="DELETE",
            endpoint=self._get_endpoint_document(collection, document_id),
            raise_on_error=True,
        )

    ############# METADATA REQUESTS ##############
    async def do_list_collection_ids(self) -> list[str]:
        """
        Lists the ids of the root collections.
        """
        collection_ids: list[str] = []
        page_token: str | None = None
        while True:
            resp = await self.do_request(
                method="POST",
                endpoint=self._get_endpoint_collection_ids(),
                json=self._build_collection_ids_body(page_token),
                raise_on_error=True,
            )
            ids, page_token = self._parse_endpoint_collection_ids(resp.json())
            collection_ids.extend(ids)
            if not page_token:
                break
        return collection_ids
