"""Reference validation for incoming documents.

Every reference a document makes to another hosted resource must resolve to
an existing, non-deleted record of the expected type before the write is
accepted. Validation is read-only and stops at the first failing reference.
"""

import logging
from collections.abc import Iterator

from sqlalchemy import select
from sqlalchemy.orm import Session

from labflow.core.errors import InvalidReferenceError
from labflow.resources import SCHEMAS, ReferenceSpec, is_hosted
from labflow.resources.fhir import as_list, reference_string, split_reference

logger = logging.getLogger(__name__)


class ReferenceValidator:
    """Resolves document references against the store.

    Usage:
        validator = ReferenceValidator(session)
        validator.check_references(document, schema.references)
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def validate_reference(self, resource_type: str, resource_id: str) -> bool:
        """Check that a non-deleted ``resource_type`` record with ``resource_id`` exists."""
        schema = SCHEMAS.get(resource_type)
        if schema is None:
            return False

        model = schema.model
        stmt = select(model.id).where(
            model.id == resource_id,
            model.is_deleted.is_(False),
        )
        return self._session.execute(stmt).first() is not None

    def check_references(self, document: dict, specs: tuple[ReferenceSpec, ...]) -> None:
        """Validate every reference in ``document`` described by ``specs``.

        References are checked in document order; the first failure is
        raised.

        Raises:
            InvalidReferenceError: naming the offending reference string
        """
        for spec, reference in self._iter_references(document, specs):
            self._check_one(spec, reference)

    def _iter_references(
        self, document: dict, specs: tuple[ReferenceSpec, ...]
    ) -> Iterator[tuple[ReferenceSpec, str]]:
        for spec in specs:
            elements = as_list(document.get(spec.path))
            if not spec.many:
                elements = elements[:1]
            for element in elements:
                reference = reference_string(element)
                if reference is not None:
                    yield spec, reference

    def _check_one(self, spec: ReferenceSpec, reference: str) -> None:
        reference_type, resource_id = split_reference(reference)

        if reference_type is None:
            reference_type = spec.target
        elif reference_type != spec.target:
            if spec.external and not is_hosted(reference_type):
                logger.debug(f"Accepting external reference {reference} in {spec.path}")
                return
            logger.warning(f"Reference {reference} in {spec.path} is not a {spec.target}")
            raise InvalidReferenceError(
                reference,
                spec.target,
                InvalidReferenceError.WRONG_TYPE,
                field=spec.path,
            )

        if not self.validate_reference(reference_type, resource_id):
            logger.warning(f"Reference {reference} in {spec.path} does not resolve")
            raise InvalidReferenceError(
                reference,
                spec.target,
                InvalidReferenceError.NOT_FOUND,
                field=spec.path,
            )
