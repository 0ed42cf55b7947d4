import pytest
from pydantic import ValidationError

from docuflow.v1.core.pagination import PageMeta, PageParams
from docuflow.v1.core.validation import blank_to_none, optional_email, optional_url
from docuflow.v1.institutions.schemas import InstitutionCreate, InstitutionUpdate
from docuflow.v1.members.models import MemberStatus
from docuflow.v1.members.schemas import MemberCreate, MemberUpdate
from docuflow.v1.system_config.models import DEFAULT_SYSTEM_CONFIG
from docuflow.v1.system_config.schemas import SystemConfigUpdate
from tests.samples import VALID_INSTITUTION_CUIT


class TestSharedValidators:
    def test_blank_to_none(self):
        assert blank_to_none(None) is None
        assert blank_to_none("   ") is None
        assert blank_to_none(" x ") == "x"

    def test_optional_email(self):
        assert optional_email("") is None
        assert optional_email(" ana@example.org ") == "ana@example.org"
        with pytest.raises(ValueError, match="Invalid email address"):
            optional_email("ana@example")

    def test_optional_url(self):
        assert optional_url(" ") is None
        assert optional_url("https://escuela.edu.ar") == "https://escuela.edu.ar"
        with pytest.raises(ValueError, match="Invalid URL"):
            optional_url("escuela dot ar")


class TestMemberSchemas:
    def test_create_defaults_and_trimming(self):
        member = MemberCreate(dni=" 30123456 ", first_name=" María ", last_name="Gómez")

        assert member.dni == "30123456"
        assert member.first_name == "María"
        assert member.status == MemberStatus.PENDING_VERIFICATION
        assert member.email is None

    @pytest.mark.parametrize("dni", ["12345", "1234567890123"])
    def test_dni_length(self, dni):
        with pytest.raises(ValidationError, match="DNI must be between 6 and 12"):
            MemberCreate(dni=dni, first_name="A", last_name="B")

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError, match="Field is required"):
            MemberCreate(dni="30123456", first_name="  ", last_name="B")

    def test_update_only_sent_fields(self):
        update = MemberUpdate(status="ACTIVE")

        assert update.model_dump(exclude_unset=True) == {"status": MemberStatus.ACTIVE}

    def test_update_blank_email_clears_it(self):
        assert MemberUpdate(email="").email is None


class TestInstitutionSchemas:
    def test_create(self):
        institution = InstitutionCreate(
            name="Escuela Técnica N° 5",
            cuit=f" {VALID_INSTITUTION_CUIT} ",
            website="https://et5.edu.ar",
        )

        assert institution.cuit == VALID_INSTITUTION_CUIT
        assert institution.is_active is True

    @pytest.mark.parametrize("cuit", ["30712345671", "3-71234567-1", "30-7123456-71"])
    def test_cuit_format(self, cuit):
        with pytest.raises(ValidationError, match="Invalid CUIT format"):
            InstitutionCreate(name="Escuela", cuit=cuit)

    def test_update_bad_website(self):
        with pytest.raises(ValidationError, match="Invalid URL"):
            InstitutionUpdate(website="not a url")


class TestSystemConfigSchema:
    def test_defaults_are_valid(self):
        config = SystemConfigUpdate(**DEFAULT_SYSTEM_CONFIG)

        assert config.app_name == "DocuFlow"
        assert config.default_locale == "es"

    @pytest.mark.parametrize(
        "field,value",
        [
            ("primary_color", "#12345"),
            ("secondary_text_color", "blue"),
            ("border_radius", "1em"),
            ("default_locale", "fr"),
            ("app_name", "   "),
            ("logo_url", "ftp//logo"),
        ],
    )
    def test_invalid_values(self, field, value):
        with pytest.raises(ValidationError):
            SystemConfigUpdate(**{**DEFAULT_SYSTEM_CONFIG, field: value})

    @pytest.mark.parametrize("radius", ["8px", "0.5rem", "50%"])
    def test_border_radius_units(self, radius):
        config = SystemConfigUpdate(**{**DEFAULT_SYSTEM_CONFIG, "border_radius": radius})

        assert config.border_radius == radius


class TestPagination:
    def test_meta(self):
        assert PageMeta.build(total=21, page=2, page_size=10).total_pages == 3
        assert PageMeta.build(total=0, page=1, page_size=10).total_pages == 0

    def test_offset(self):
        assert PageParams(page=3, page_size=20).offset == 40

    def test_page_size_limit(self):
        with pytest.raises(ValidationError):
            PageParams(page_size=101)
