"""
Общие спецификации для тестов генератора
"""

import copy

import pytest

from schema_sync.runtime import QueryCache

PETSTORE_SPEC = {
    "openapi": "3.0.0",
    "info": {"title": "Petstore", "version": "1.0.0"},
    "paths": {
        "/pets/{id}": {
            "get": {
                "summary": "Get a pet",
                "tags": ["Pets"],
                "responses": {
                    "200": {
                        "description": "A pet",
                        "content": {
                            "application/json": {
                                "schema": {
                                    "type": "object",
                                    "properties": {
                                        "id": {"type": "string"},
                                        "name": {"type": "string"},
                                    },
                                }
                            }
                        },
                    }
                },
            },
            "delete": {
                "operationId": "deletePet",
                "tags": ["Pets"],
                "security": [{"bearer": []}],
                "responses": {"200": {"description": "Deleted"}},
            },
        },
        "/pets": {
            "post": {
                "operationId": "createPet",
                "summary": "Create a pet",
                "tags": ["Pets"],
                "parameters": [
                    {"name": "dry_run", "in": "query", "schema": {"type": "boolean"}}
                ],
                "requestBody": {
                    "required": True,
                    "content": {
                        "application/json": {
                            "schema": {
                                "type": "object",
                                "properties": {"name": {"type": "string"}},
                                "required": ["name"],
                            }
                        }
                    },
                },
                "responses": {
                    "201": {
                        "description": "Created",
                        "content": {
                            "application/json": {
                                "schema": {"$ref": "#/components/schemas/Pet"}
                            }
                        },
                    }
                },
            },
            "get": {
                "operationId": "listPets",
                "tags": ["Pets"],
                "parameters": [
                    {"name": "limit", "in": "query", "schema": {"type": "integer"}},
                    {"name": "status", "in": "query"},
                ],
                "responses": {
                    "200": {
                        "description": "Pets",
                        "content": {
                            "application/json": {
                                "schema": {
                                    "type": "array",
                                    "items": {"$ref": "#/components/schemas/Pet"},
                                }
                            }
                        },
                    }
                },
            },
        },
        "/health": {
            "get": {"responses": {"200": {"description": "OK"}}},
        },
    },
    "components": {
        "schemas": {
            "Pet": {
                "type": "object",
                "properties": {
                    "id": {"type": "string"},
                    "name": {"type": "string"},
                    "status": {
                        "title": "PetStatus",
                        "type": "string",
                        "enum": ["available", "sold"],
                    },
                },
                "required": ["id", "name"],
            }
        }
    },
}


SHARED_REF_SPEC = {
    "openapi": "3.0.0",
    "info": {"title": "Shared", "version": "1.0.0"},
    "paths": {
        "/pets/{id}": {
            "get": {
                "operationId": "getPet",
                "tags": ["Pets"],
                "responses": {
                    "200": {
                        "description": "A pet",
                        "content": {
                            "application/json": {
                                "schema": {
                                    "type": "object",
                                    "properties": {
                                        "name": {"type": "string"},
                                        "owner": {"$ref": "#/components/schemas/Owner"},
                                    },
                                }
                            }
                        },
                    }
                },
            }
        },
        "/owners/{id}": {
            "get": {
                "operationId": "getOwner",
                "tags": ["Owners"],
                "responses": {
                    "200": {
                        "description": "An owner",
                        "content": {
                            "application/json": {
                                "schema": {"$ref": "#/components/schemas/Owner"}
                            }
                        },
                    }
                },
            }
        },
    },
    "components": {
        "schemas": {
            "Owner": {
                "type": "object",
                "properties": {"name": {"type": "string"}},
            }
        }
    },
}


@pytest.fixture
def petstore_spec():
    return copy.deepcopy(PETSTORE_SPEC)


@pytest.fixture
def shared_ref_spec():
    return copy.deepcopy(SHARED_REF_SPEC)


@pytest.fixture(autouse=True)
def clean_query_cache():
    QueryCache().clear()
    yield
    QueryCache().clear()
