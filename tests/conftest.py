"""Shared pytest fixtures for all tests."""

import json
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Callable

import pytest


@pytest.fixture
def parse_jmx() -> Callable[[str], ET.Element]:
    """Return a function parsing generated JMX text back into an Element.

    Returns:
        Function taking the XML string and returning the jmeterTestPlan root
    """

    def _parse(xml: str) -> ET.Element:
        return ET.fromstring(xml.encode("utf-8"))

    return _parse


@pytest.fixture
def single_get_spec() -> str:
    """OpenAPI 3 spec with one untagged GET /users/{id} operation."""
    return json.dumps(
        {
            "openapi": "3.0.3",
            "info": {"title": "Users API", "version": "1.0.0"},
            "servers": [{"url": "https://api.example.com/v1"}],
            "paths": {
                "/users/{id}": {
                    "get": {
                        "summary": "Get user",
                        "operationId": "getUser",
                        "parameters": [
                            {"name": "id", "in": "path", "required": True, "schema": {"type": "integer"}}
                        ],
                        "responses": {"200": {"description": "OK"}},
                    }
                }
            },
        }
    )


@pytest.fixture
def orders_post_spec() -> str:
    """OpenAPI 3 spec with POST /orders and an inline request body schema."""
    return json.dumps(
        {
            "openapi": "3.0.3",
            "info": {"title": "Orders API", "version": "2.0.0"},
            "servers": [{"url": "https://shop.example.com"}],
            "paths": {
                "/orders": {
                    "post": {
                        "summary": "Create order",
                        "requestBody": {
                            "content": {
                                "application/json": {
                                    "schema": {
                                        "type": "object",
                                        "properties": {
                                            "orderId": {"type": "integer"},
                                            "customerEmail": {"type": "string"},
                                        },
                                    }
                                }
                            }
                        },
                        "responses": {"201": {"description": "Created"}},
                    }
                }
            },
        }
    )


@pytest.fixture
def tagged_spec_yaml() -> str:
    """OpenAPI 3 YAML spec: three operations, two tags, three first path segments."""
    return """openapi: 3.0.0
info:
  title: Shop API
  version: 1.2.0
servers:
  - url: http://localhost:8080/api
paths:
  /users:
    get:
      tags: [users]
      summary: List users
      parameters:
        - name: limit
          in: query
          schema:
            type: integer
      responses:
        '200':
          description: OK
  /accounts:
    post:
      tags: [users]
      summary: Create account
      requestBody:
        content:
          application/json:
            schema:
              $ref: '#/components/schemas/Account'
      responses:
        '201':
          description: Created
  /orders:
    get:
      tags: [orders]
      summary: List orders
      responses:
        '200':
          description: OK
components:
  schemas:
    Account:
      type: object
      properties:
        accountId:
          type: integer
        displayName:
          type: string
        active:
          type: boolean
"""


@pytest.fixture
def bearer_spec() -> str:
    """OpenAPI 3 spec with a single HTTP bearer security scheme."""
    return json.dumps(
        {
            "openapi": "3.0.3",
            "info": {"title": "Secure API", "version": "1.0.0"},
            "servers": [{"url": "https://secure.example.com"}],
            "paths": {"/me": {"get": {"summary": "Current user", "responses": {"200": {"description": "OK"}}}}},
            "components": {"securitySchemes": {"bearerAuth": {"type": "http", "scheme": "bearer"}}},
        }
    )


@pytest.fixture
def cyclic_spec() -> str:
    """OpenAPI 3 spec whose request body is a self-referential tree schema."""
    return json.dumps(
        {
            "openapi": "3.0.3",
            "info": {"title": "Tree API", "version": "1.0.0"},
            "servers": [{"url": "https://tree.example.com"}],
            "paths": {
                "/nodes": {
                    "post": {
                        "tags": ["nodes"],
                        "requestBody": {
                            "content": {
                                "application/json": {"schema": {"$ref": "#/components/schemas/Node"}}
                            }
                        },
                        "responses": {"201": {"description": "Created"}},
                    }
                }
            },
            "components": {
                "schemas": {
                    "Node": {
                        "type": "object",
                        "properties": {
                            "name": {"type": "string"},
                            "children": {"type": "array", "items": {"$ref": "#/components/schemas/Node"}},
                        },
                    }
                }
            },
        }
    )


@pytest.fixture
def swagger2_spec_yaml() -> str:
    """Swagger 2.0 YAML spec with definitions, body and formData parameters."""
    return """swagger: '2.0'
info:
  title: Petstore
  version: 1.0.5
host: petstore.example.com
basePath: /v2
schemes:
  - http
securityDefinitions:
  api_key:
    type: apiKey
    name: api_key
    in: header
  basicAuth:
    type: basic
  petstore_auth:
    type: oauth2
    flow: implicit
    authorizationUrl: https://petstore.example.com/oauth/authorize
paths:
  /pet:
    post:
      tags: [pet]
      summary: Add a new pet
      parameters:
        - in: body
          name: body
          required: true
          schema:
            $ref: '#/definitions/Pet'
      responses:
        '405':
          description: Invalid input
  /pet/{petId}:
    parameters:
      - name: petId
        in: path
        required: true
        type: integer
    get:
      tags: [pet]
      summary: Find pet by ID
      responses:
        '200':
          description: OK
    post:
      tags: [pet]
      summary: Update a pet with form data
      consumes:
        - application/x-www-form-urlencoded
      parameters:
        - name: name
          in: formData
          type: string
        - name: status
          in: formData
          type: string
      responses:
        '405':
          description: Invalid input
  /store/inventory:
    get:
      tags: [store]
      summary: Returns pet inventories
      responses:
        '200':
          description: OK
definitions:
  Pet:
    type: object
    properties:
      id:
        type: integer
        format: int64
      name:
        type: string
        example: doggie
      photoUrls:
        type: array
        items:
          type: string
      status:
        type: string
        enum: [available, pending, sold]
"""


@pytest.fixture
def write_spec(tmp_path: Path) -> Callable[[str, str], Path]:
    """Return a function writing spec text to a file in a temp directory.

    Returns:
        Function taking (filename, content) and returning the file path
    """

    def _write(filename: str, content: str) -> Path:
        spec_path = tmp_path / filename
        spec_path.write_text(content, encoding="utf-8")
        return spec_path

    return _write
